# ============================================================
# Module : curation/infra/monitoring/celery_metrics_server.py
# Objet  : Exposition /metrics des workers d'ingestion (WSGI).
# Contexte : Hôte, port et allowlist viennent des `Settings`
#            (METRICS_HOST, METRICS_PORT, METRICS_ALLOWLIST).
# ============================================================
"""Serveur de métriques Prometheus des workers d'ingestion.

L'allowlist accepte des adresses et des réseaux CIDR (`10.0.0.0/8`). L'en-tête
`X-Forwarded-For` n'est pris en compte que si METRICS_TRUST_FORWARDED est vrai.

Usage:
    python -m curation.infra.monitoring.celery_metrics_server [--port 9200]
"""

from __future__ import annotations

import argparse
import ipaddress
from collections.abc import Callable, Iterable
from typing import Any
from wsgiref.simple_server import make_server

import structlog

from curation.core.settings import Settings, get_settings
from curation.infra.monitoring.celery_exporter import metrics_wsgi_app

Network = ipaddress.IPv4Network | ipaddress.IPv6Network


def parse_allowlist(allowlist: str) -> list[Network]:
    """Convertit `"127.0.0.1, 10.0.0.0/8"` en réseaux; les entrées invalides sont ignorées."""
    log = structlog.get_logger(__name__)
    networks: list[Network] = []
    for raw in (allowlist or "").split(","):
        item = raw.strip()
        if not item:
            continue
        try:
            networks.append(ipaddress.ip_network(item, strict=False))
        except ValueError:
            log.warning("metrics_allowlist_entry_invalid", entry=item)
    return networks


def _client_address(environ: dict[str, Any], trust_forwarded: bool) -> str:
    if trust_forwarded:
        forwarded = environ.get("HTTP_X_FORWARDED_FOR") or ""
        if forwarded:
            return forwarded.split(",")[0].strip()
    return environ.get("REMOTE_ADDR") or ""


def _allowed(address: str, networks: Iterable[Network]) -> bool:
    try:
        ip = ipaddress.ip_address(address)
    except ValueError:
        return False
    return any(ip in net for net in networks)


def build_metrics_app(
    allowlist: str, trust_forwarded: bool = False
) -> Callable[[dict[str, Any], Callable], Any]:
    """Appli WSGI servant les métriques aux seuls clients de l'allowlist.

    Une allowlist vide n'autorise personne.
    """
    networks = parse_allowlist(allowlist)
    log = structlog.get_logger(__name__).bind(component="metrics_server")

    def _app(environ, start_response):  # type: ignore[no-untyped-def]
        client = _client_address(environ, trust_forwarded)
        if not _allowed(client, networks):
            log.info("metrics_request_denied", client=client)
            start_response("403 FORBIDDEN", [("Content-Type", "text/plain")])
            return [b"forbidden"]
        return metrics_wsgi_app(environ, start_response)

    return _app


def build_from_settings(settings: Settings) -> Callable[[dict[str, Any], Callable], Any]:
    return build_metrics_app(settings.METRICS_ALLOWLIST, settings.METRICS_TRUST_FORWARDED)


def main(argv: list[str] | None = None) -> None:
    """Démarre le serveur; les options CLI surchargent les `Settings`."""
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Métriques Prometheus des workers d'ingestion")
    parser.add_argument("--host", default=settings.METRICS_HOST)
    parser.add_argument("--port", type=int, default=settings.METRICS_PORT)
    parser.add_argument("--allowlist", default=settings.METRICS_ALLOWLIST)
    args = parser.parse_args(argv)

    app = build_metrics_app(args.allowlist, settings.METRICS_TRUST_FORWARDED)
    with make_server(args.host, args.port, app) as httpd:
        structlog.get_logger(__name__).info("metrics_listening", host=args.host, port=args.port)
        httpd.serve_forever()


if __name__ == "__main__":  # pragma: no cover - script entry
    main()
