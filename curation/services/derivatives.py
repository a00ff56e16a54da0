# ============================================================
# Module : curation/services/derivatives.py
# Objet  : Génération des dérivés (vignettes, texte extrait, transcodages).
# Contexte : Les recettes sont indépendantes: l'échec de l'une n'empêche pas
#            les autres; les échecs sont remontés ensemble (DerivativeError).
# ============================================================

from __future__ import annotations

import io
import os
import subprocess
import tempfile
from dataclasses import dataclass

import structlog
from PIL import Image

from curation.app.metrics import DERIVATIVES_CREATED, DERIVATIVES_FAILED
from curation.core.settings import PipelineConfig
from curation.domain.entities import FileSet, StoredFile, is_audio, is_image, is_text, is_video
from curation.domain.errors import DerivativeError, PersistenceFailure
from curation.domain.inputs import IoDecorator


@dataclass(frozen=True)
class Rendition:
    """Sortie d'une recette prête à être attachée."""

    relation: str
    data: bytes
    mime_type: str
    filename: str


class ThumbnailRecipe:
    """Vignette JPEG bornée par `thumbnail_size` (images)."""

    name = "thumbnail"

    def __init__(self, size: int) -> None:
        self.size = size

    def render(self, path: str, stem: str) -> list[Rendition]:
        with Image.open(path) as img:
            img = img.convert("RGB")
            img.thumbnail((self.size, self.size))
            buf = io.BytesIO()
            img.save(buf, format="JPEG", quality=85)
        return [Rendition("thumbnail", buf.getvalue(), "image/jpeg", f"{stem}_thumbnail.jpg")]


class ExtractedTextRecipe:
    """Texte extrait normalisé en UTF-8 (contenus `text/*`)."""

    name = "extracted_text"

    def render(self, path: str, stem: str) -> list[Rendition]:
        with open(path, "rb") as fh:
            text = fh.read().decode("utf-8", errors="replace")
        data = text.replace("\r\n", "\n").encode("utf-8")
        return [Rendition("extracted_text", data, "text/plain", f"{stem}_text.txt")]


class FfmpegRecipe:
    """Transcodage via l'exécutable ffmpeg: une recette par sortie."""

    def __init__(
        self, name: str, ffmpeg_path: str, relation: str, mime_type: str, options: list[str]
    ) -> None:
        self.name = name
        self.ffmpeg_path = ffmpeg_path
        self.relation = relation
        self.mime_type = mime_type
        self.options = options

    def render(self, path: str, stem: str) -> list[Rendition]:
        ext = "jpg" if self.relation == "thumbnail" else self.relation
        with tempfile.TemporaryDirectory(prefix="derive-") as tmp:
            out = os.path.join(tmp, f"{stem}.{ext}")
            subprocess.run(
                [self.ffmpeg_path, "-y", "-i", path, *self.options, out],
                check=True,
                capture_output=True,
                timeout=600,
            )
            with open(out, "rb") as fh:
                data = fh.read()
        return [Rendition(self.relation, data, self.mime_type, os.path.basename(out))]


def video_recipes(ffmpeg_path: str) -> list[FfmpegRecipe]:
    return [
        FfmpegRecipe(
            "mp4",
            ffmpeg_path,
            "mp4",
            "video/mp4",
            ["-c:v", "libx264", "-c:a", "aac", "-movflags", "+faststart"],
        ),
        FfmpegRecipe(
            "webm", ffmpeg_path, "webm", "video/webm", ["-c:v", "libvpx", "-c:a", "libvorbis"]
        ),
        # Image extraite à 1 s
        FfmpegRecipe(
            "video_thumbnail",
            ffmpeg_path,
            "thumbnail",
            "image/jpeg",
            ["-ss", "00:00:01", "-frames:v", "1"],
        ),
    ]


def audio_recipes(ffmpeg_path: str) -> list[FfmpegRecipe]:
    return [
        FfmpegRecipe(
            "mp3", ffmpeg_path, "mp3", "audio/mpeg", ["-codec:a", "libmp3lame", "-q:a", "4"]
        ),
        FfmpegRecipe("ogg", ffmpeg_path, "ogg", "audio/ogg", ["-codec:a", "libvorbis"]),
    ]


class DerivativeService:
    """Produit et attache les dérivés adaptés au type caractérisé du file set."""

    def __init__(self, repository, config: PipelineConfig) -> None:
        self.repository = repository
        self.config = config
        self._log = structlog.get_logger(__name__).bind(component="derivatives")

    def recipes_for(self, mime_type: str | None) -> list:
        """Recettes applicables; liste vide (no-op) pour les types sans recette."""
        if is_image(mime_type):
            return [ThumbnailRecipe(self.config.thumbnail_size)]
        if is_text(mime_type):
            return [ExtractedTextRecipe()]
        if is_video(mime_type):
            return video_recipes(self.config.ffmpeg_path)
        if is_audio(mime_type):
            return audio_recipes(self.config.ffmpeg_path)
        return []

    def create_derivatives(self, file_set: FileSet, path: str) -> list[StoredFile]:
        """Génère les dérivés depuis `path` et les persiste comme relations du file set."""
        recipes = self.recipes_for(file_set.mime_type)
        if not recipes:
            self._log.debug("no_derivative_recipe", file_set_id=file_set.id, mime=file_set.mime_type)
            return []
        source = file_set.original_file
        stem = os.path.splitext(source.original_name if source else os.path.basename(path))[0]
        created: list[StoredFile] = []
        failed: list[str] = []
        for recipe in recipes:
            try:
                renditions = recipe.render(path, stem or file_set.id)
            except Exception as exc:
                failed.append(recipe.name)
                DERIVATIVES_FAILED.labels(recipe=recipe.name).inc()
                self._log.error(
                    "derivative_recipe_failed",
                    file_set_id=file_set.id,
                    recipe=recipe.name,
                    error=f"{type(exc).__name__}: {exc}",
                )
                continue
            for rendition in renditions:
                decorated = IoDecorator(
                    io.BytesIO(rendition.data), rendition.mime_type, rendition.filename
                )
                created.append(
                    self.repository.attach(file_set, decorated, rendition.relation, versioning=False)
                )
                DERIVATIVES_CREATED.labels(recipe=recipe.name).inc()
        if created and not self.repository.save(file_set):
            raise PersistenceFailure(
                f"cannot persist derivatives of {file_set.id}", file_set_id=file_set.id
            )
        if failed:
            raise DerivativeError(
                f"derivative recipes failed for {file_set.id}: {', '.join(failed)}",
                file_set_id=file_set.id,
                failed_recipes=failed,
            )
        return created
