"""Render backend interface and per-variant backend selection."""
from __future__ import annotations

from typing import Mapping, Protocol

from engine.variants import BackendKind, get_variant_spec
from errors import RenderFailure
from models import DocumentViewModel, TemplateVariant


class RenderBackend(Protocol):
    kind: BackendKind

    def supports(self, variant: TemplateVariant) -> bool:
        ...

    async def render(self, variant: TemplateVariant, view: DocumentViewModel) -> bytes:
        ...


def select_backend(variant: TemplateVariant, backends: Mapping[BackendKind, RenderBackend]) -> RenderBackend:
    """The backend the variant's registry entry asks for; it must be configured and support the variant."""
    kind = get_variant_spec(variant).backend
    backend = backends.get(kind)
    if backend is None or not backend.supports(variant):
        raise RenderFailure(kind.value, variant, "no configured backend supports this variant")
    return backend
