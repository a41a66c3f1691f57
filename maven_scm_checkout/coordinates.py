"""Artifact locator parsing."""

from __future__ import annotations

from pydantic import ValidationError

from .errors import MalformedCoordinate
from .models import LATEST, ArtifactCoordinate

_MIN_TOKENS = 2
_MAX_TOKENS = 5

_USAGE = "groupId:artifactId[:version[:packaging[:classifier]]]"


def parse_coordinate(text: str) -> ArtifactCoordinate:
    """Parse ``groupId:artifactId[:version[:extension[:classifier]]]``.

    A missing version becomes the ``LATEST`` sentinel. Extension and
    classifier are kept on the coordinate but play no part in checkout.

    Raises:
        MalformedCoordinate: token count outside 2..5, or an empty
            groupId/artifactId.
    """
    tokens = (text or "").strip().split(":")
    if len(tokens) < _MIN_TOKENS or len(tokens) > _MAX_TOKENS:
        raise MalformedCoordinate(f"Invalid artifact, you must specify {_USAGE}: {text!r}")

    group_id, artifact_id = tokens[0].strip(), tokens[1].strip()
    if not group_id or not artifact_id:
        raise MalformedCoordinate(f"groupId and artifactId must be non-empty: {text!r}")

    rest = [t.strip() or None for t in tokens[2:]] + [None] * (_MAX_TOKENS - len(tokens))
    version, extension, classifier = rest

    try:
        return ArtifactCoordinate(
            group_id=group_id,
            artifact_id=artifact_id,
            version=version or LATEST,
            extension=extension,
            classifier=classifier,
        )
    except ValidationError as e:
        raise MalformedCoordinate(f"Invalid artifact coordinate {text!r}: {e}") from e


__all__ = ["parse_coordinate"]
