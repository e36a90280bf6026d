"""
Browser backend: variant HTML -> pooled headless Chromium -> PDF.
One fresh page per render; the page is closed and the pool entry released
even when printing fails or the caller's timeout cancels the render.
"""
from __future__ import annotations

import logging

from engine.variants import BackendKind, get_variant_spec
from errors import RenderFailure
from models import DocumentViewModel, TemplateVariant

from .browser_pool import BrowserPool
from .document_html import DocumentHtmlBuilder, TemplateFillError

_LOG = logging.getLogger(__name__)


def _margin(page_margin_mm: float) -> dict[str, str]:
    margin_in = f"{page_margin_mm / 25.4:.2f}in"
    return {"top": margin_in, "bottom": margin_in, "left": margin_in, "right": margin_in}


class BrowserBackend:
    kind = BackendKind.BROWSER

    def __init__(
        self,
        pool: BrowserPool,
        html_builder: DocumentHtmlBuilder | None = None,
        page_format: str = "Letter",
        page_load_timeout: float = 30.0,
        page_margin_mm: float = 0,
    ):
        self.pool = pool
        self.html_builder = html_builder if html_builder is not None else DocumentHtmlBuilder(page_format=page_format)
        self.page_format = page_format
        self.page_load_timeout = page_load_timeout
        self.page_margin_mm = page_margin_mm

    def supports(self, variant: TemplateVariant) -> bool:
        return get_variant_spec(variant).backend == BackendKind.BROWSER

    def build_html(self, variant: TemplateVariant, view: DocumentViewModel) -> str:
        try:
            return self.html_builder.build(variant, view)
        except (TemplateFillError, OSError) as exc:
            raise RenderFailure(self.kind.value, variant, exc) from exc

    async def _print(self, entry, html_content: str) -> bytes:
        page = await entry.new_page()
        try:
            await page.set_content(
                html_content,
                wait_until="networkidle",
                timeout=self.page_load_timeout * 1000,
            )
            await page.emulate_media(media="print")
            return await page.pdf(
                format=self.page_format,
                print_background=True,
                margin=_margin(self.page_margin_mm),
            )
        finally:
            try:
                await page.close()
            except Exception as exc:
                _LOG.warning("Failed to close render page: %s", exc)

    async def render(self, variant: TemplateVariant, view: DocumentViewModel) -> bytes:
        html_content = self.build_html(variant, view)
        try:
            async with self.pool.lease() as entry:
                pdf = await self._print(entry, html_content)
        except RenderFailure:
            raise
        except Exception as exc:
            raise RenderFailure(self.kind.value, variant, exc) from exc
        _LOG.debug("Browser render %s: %d bytes", variant.value, len(pdf))
        return pdf
