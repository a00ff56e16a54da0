"""Configuration centralisée Celery pour les tâches d'ingestion.

Ce module définit les acquittements, timeouts et limites de connexion au broker. Le pipeline
ne réessaie jamais de lui-même: la reprise repose sur la relivraison du message (acks tardifs,
rejet si le worker disparaît), d'où des étapes rejouables.
"""

# ============================================================
# Module : curation/app/celeryconfig.py
# Objet  : Configuration centralisée Celery (acks, timeouts).
# ============================================================

from __future__ import annotations

# Relivraison au moins une fois
task_acks_late = True
task_reject_on_worker_lost = True
worker_prefetch_multiplier = 1
task_time_limit = 3600  # secondes (transcodages longs)
task_soft_time_limit = 3300
broker_pool_limit = 10

task_serializer = "json"
result_serializer = "json"
accept_content = ["json"]
