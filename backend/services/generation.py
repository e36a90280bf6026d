"""
Generation facade: DealSnapshot -> DocumentArtifact.

Order of work: normalize (fails fast on missing vehicle fields), resolve the
template variant (fails fast on unresolvable taxonomy), assign the document
number, render, write a temp file, upload. Nothing is rendered or stored for a
deal that fails the first two steps. The caller's snapshot is never modified.

Storage failures are fatal in production. Outside production the temp file is
kept and the artifact is returned with storageType "local".
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Callable, Mapping, Optional, Sequence, Union

from cache.template_cache import TemplateCache
from config import GenerationSettings
from engine.document_number import DocumentIdentity, DocumentNumberer
from engine.template_resolver import DealTaxonomy, DocumentRole, TemplateResolver
from engine.variants import BackendKind, VariantSpec, get_variant_spec
from errors import (
    InconsistentDealData,
    MissingVehicleFields,
    RenderFailure,
    StorageFailure,
    TemplateResolutionError,
)
from events import (
    EventRecorder,
    GenerationEvent,
    GenerationEventType,
    LoggingEventRecorder,
    safe_record,
)
from house_accounts import get_house_account
from models import DealSnapshot, DocumentArtifact, DocumentViewModel, HouseAccount, PartyType, TemplateVariant
from reporting.backends import RenderBackend, select_backend
from reporting.browser_backend import BrowserBackend
from reporting.browser_pool import BrowserLauncher, BrowserPool
from reporting.document_html import DocumentHtmlBuilder
from reporting.vector_backend import VectorBackend
from s3_client import S3StorageClient, sha256_hex
from services.field_normalizer import FieldNormalizer

_LOG = logging.getLogger(__name__)

DealInput = Union[DealSnapshot, Mapping[str, Any]]


@dataclass(frozen=True)
class GenerationRequest:
    deal: DealInput
    variant: Optional[TemplateVariant] = None
    role: Optional[DocumentRole] = None
    generated_by: Optional[str] = None


def _as_snapshot(deal: DealInput) -> DealSnapshot:
    if isinstance(deal, DealSnapshot):
        return deal
    return DealSnapshot.model_validate(dict(deal))


def _as_request(item: Union[GenerationRequest, DealInput]) -> GenerationRequest:
    if isinstance(item, GenerationRequest):
        return item
    return GenerationRequest(deal=item)


def _write_temp(path: Path, body: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(body)


def _remove_temp(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as exc:
        _LOG.warning("Failed to remove temp file %s: %s", path, exc)


class GenerationFacade:
    def __init__(
        self,
        settings: GenerationSettings,
        *,
        house: HouseAccount,
        backends: Mapping[BackendKind, RenderBackend],
        storage: S3StorageClient,
        events: EventRecorder | None = None,
        pool: BrowserPool | None = None,
        html_builder: DocumentHtmlBuilder | None = None,
        numberer: DocumentNumberer | None = None,
        resolver: TemplateResolver | None = None,
        today: Callable[[], date] | None = None,
    ):
        self.settings = settings
        self.house = house
        self.backends = dict(backends)
        self.storage = storage
        self.events = events if events is not None else LoggingEventRecorder()
        self.pool = pool
        if html_builder is None:
            html_builder = DocumentHtmlBuilder(page_format=settings.pdf_page_format)
        self.html_builder = html_builder
        self.numberer = numberer or DocumentNumberer()
        self.resolver = resolver or TemplateResolver()
        self.normalizer = FieldNormalizer(house, today=today)
        self._render_slots = asyncio.Semaphore(settings.max_concurrent_renders)

    @classmethod
    def from_settings(
        cls,
        settings: GenerationSettings | None = None,
        *,
        launcher: BrowserLauncher | None = None,
        s3_client: Any = None,
        events: EventRecorder | None = None,
        today: Callable[[], date] | None = None,
    ) -> "GenerationFacade":
        settings = settings or GenerationSettings.from_env()
        house = get_house_account(settings.house_account_id)
        if house is None:
            raise ValueError(f"Unknown house account: {settings.house_account_id!r}")
        builder = DocumentHtmlBuilder(
            TemplateCache(settings.template_cache_ttl_seconds),
            page_format=settings.pdf_page_format,
        )
        pool = BrowserPool(
            launcher,
            capacity=settings.browser_pool_capacity,
            sweep_interval=settings.browser_idle_sweep_seconds,
            health_timeout=settings.browser_health_timeout,
            launch_timeout=settings.browser_launch_timeout,
        )
        backends = {
            BackendKind.VECTOR: VectorBackend(settings.pdf_page_format),
            BackendKind.BROWSER: BrowserBackend(
                pool,
                builder,
                page_format=settings.pdf_page_format,
                page_load_timeout=settings.page_load_timeout,
            ),
        }
        return cls(
            settings,
            house=house,
            backends=backends,
            storage=S3StorageClient.from_settings(settings, client=s3_client),
            events=events,
            pool=pool,
            html_builder=builder,
            today=today,
        )

    def start(self) -> None:
        if self.pool is not None:
            self.pool.start()

    async def close(self) -> None:
        if self.pool is not None:
            await self.pool.close()

    async def __aenter__(self) -> "GenerationFacade":
        self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def _taxonomy(self, deal: DealSnapshot, role: Optional[DocumentRole]) -> DealTaxonomy:
        taxonomy = DealTaxonomy.from_deal(deal)
        return taxonomy.for_role(role) if role is not None else taxonomy

    def _diagnostic_variant(self, deal: DealSnapshot, role: Optional[DocumentRole]) -> Optional[TemplateVariant]:
        try:
            return self.resolver.resolve_taxonomy(self._taxonomy(deal, role))
        except TemplateResolutionError:
            return None

    def prepare(
        self,
        deal: DealInput,
        variant: Optional[TemplateVariant] = None,
        role: Optional[DocumentRole] = None,
    ) -> tuple[TemplateVariant, DocumentViewModel]:
        """Normalize then resolve. Raises before any render or storage work."""
        snapshot = _as_snapshot(deal)
        try:
            view = self.normalizer.normalize(snapshot, role=role)
        except MissingVehicleFields as exc:
            known = variant or self._diagnostic_variant(snapshot, role)
            if known is None or exc.variant is not None:
                raise
            raise MissingVehicleFields(exc.missing, variant=known) from exc
        except InconsistentDealData as exc:
            known = variant or self._diagnostic_variant(snapshot, role)
            if known is None or exc.variant is not None:
                raise
            raise InconsistentDealData(exc.reason, fields=exc.fields, variant=known) from exc
        if variant is None:
            variant = self.resolver.resolve_taxonomy(self._taxonomy(snapshot, role))
        return variant, view

    def render_html(
        self,
        deal: DealInput,
        variant: Optional[TemplateVariant] = None,
        role: Optional[DocumentRole] = None,
    ) -> tuple[TemplateVariant, str]:
        """HTML of a browser variant without launching a browser (previews)."""
        variant, view = self.prepare(deal, variant, role)
        spec = get_variant_spec(variant)
        if spec.backend != BackendKind.BROWSER:
            raise RenderFailure(spec.backend.value, variant, "variant has no HTML template")
        identity = self.numberer.assign(spec, view.sub_type, view.stock_number_or_vin)
        return variant, self.html_builder.build(variant, view.with_document_number(identity.document_number))

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    async def _render(self, backend: RenderBackend, variant: TemplateVariant, view: DocumentViewModel) -> bytes:
        timeout = self.settings.render_timeout
        if timeout is None:
            return await backend.render(variant, view)
        try:
            return await asyncio.wait_for(backend.render(variant, view), timeout=timeout)
        except asyncio.TimeoutError as exc:
            raise RenderFailure(backend.kind.value, variant, f"render timed out after {timeout}s") from exc

    async def _store(
        self,
        pdf: bytes,
        identity: DocumentIdentity,
        spec: VariantSpec,
        view: DocumentViewModel,
        deal_id: Optional[str],
    ) -> DocumentArtifact:
        temp_path = Path(self.settings.temp_dir) / identity.file_name
        await asyncio.to_thread(_write_temp, temp_path, pdf)
        key = self.storage.key_for(identity.file_name)
        storage_type = "s3"
        local_path = None
        try:
            stored = await self.storage.upload_file(temp_path, key)
            url = stored.url
        except StorageFailure as exc:
            if not self.settings.allow_local_fallback:
                await asyncio.to_thread(_remove_temp, temp_path)
                raise StorageFailure(
                    exc.operation, exc.key, exc.cause, attempts=exc.attempts, variant=spec.variant
                ) from exc
            _LOG.warning("Storage failed for %s, keeping local copy at %s: %s", identity.file_name, temp_path, exc)
            safe_record(self.events, GenerationEvent(
                event_type=GenerationEventType.STORAGE_FALLBACK,
                variant=spec.variant.value,
                document_number=identity.document_number,
                deal_id=deal_id,
                outcome="local",
                error_type=type(exc).__name__,
                detail=str(exc),
            ))
            storage_type = "local"
            local_path = str(temp_path.resolve())
            url = temp_path.resolve().as_uri()

        return DocumentArtifact(
            file_name=identity.file_name,
            storage_key=key,
            retrieval_url=url,
            byte_size=len(pdf),
            document_number=identity.document_number,
            document_type=spec.document_type,
            variant=spec.variant,
            generated_at=datetime.now(timezone.utc),
            generated_by=view.generated_by,
            content_checksum=sha256_hex(pdf),
            storage_type=storage_type,
            local_path=local_path,
        )

    async def _generate(self, request: GenerationRequest) -> DocumentArtifact:
        started = time.perf_counter()
        snapshot = _as_snapshot(request.deal)
        deal_id = snapshot.deal_id
        variant: Optional[TemplateVariant] = request.variant
        document_number: Optional[str] = None
        safe_record(self.events, GenerationEvent(
            event_type=GenerationEventType.GENERATION_STARTED,
            variant=variant.value if variant else None,
            deal_id=deal_id,
        ))
        try:
            variant, view = self.prepare(snapshot, request.variant, request.role)
            if request.generated_by:
                view = view.model_copy(update={"generated_by": request.generated_by})
            spec = get_variant_spec(variant)
            backend = select_backend(variant, self.backends)
            identity = self.numberer.assign(spec, view.sub_type, view.stock_number_or_vin)
            document_number = identity.document_number
            view = view.with_document_number(document_number)
            pdf = await self._render(backend, variant, view)
            artifact = await self._store(pdf, identity, spec, view, deal_id)
        except Exception as exc:
            safe_record(self.events, GenerationEvent(
                event_type=GenerationEventType.GENERATION_FAILED,
                variant=variant.value if variant else getattr(getattr(exc, "variant", None), "value", None),
                document_number=document_number,
                deal_id=deal_id,
                duration_ms=(time.perf_counter() - started) * 1000,
                outcome="failed",
                error_type=type(exc).__name__,
                detail=str(exc),
            ))
            raise
        safe_record(self.events, GenerationEvent(
            event_type=GenerationEventType.GENERATION_SUCCEEDED,
            variant=variant.value,
            document_number=artifact.document_number,
            deal_id=deal_id,
            duration_ms=(time.perf_counter() - started) * 1000,
            outcome=artifact.storage_type,
        ))
        return artifact

    async def generate(
        self,
        deal: DealInput,
        variant: Optional[TemplateVariant] = None,
        *,
        role: Optional[DocumentRole] = None,
        generated_by: Optional[str] = None,
    ) -> DocumentArtifact:
        """Generate and store one document. `variant` overrides resolution (companion documents)."""
        return await self._generate(GenerationRequest(deal, variant, role, generated_by))

    async def generate_vehicle_record(self, deal: DealInput, *, generated_by: Optional[str] = None) -> DocumentArtifact:
        snapshot = _as_snapshot(deal)
        variant = self.resolver.resolve_vehicle_record(snapshot)
        return await self.generate(snapshot, variant, generated_by=generated_by)

    async def generate_power_of_attorney(self, deal: DealInput, *, generated_by: Optional[str] = None) -> DocumentArtifact:
        return await self.generate(deal, TemplateVariant.POWER_OF_ATTORNEY, generated_by=generated_by)

    async def generate_batch(
        self,
        items: Sequence[Union[GenerationRequest, DealInput]],
        *,
        return_exceptions: bool = False,
    ) -> list[Union[DocumentArtifact, BaseException]]:
        """
        Generate several documents with at most `max_concurrent_renders` in flight.
        Results come back in request order. With return_exceptions=True a failed
        item yields its exception instead of failing the batch.
        """
        requests = [_as_request(item) for item in items]

        async def run(request: GenerationRequest) -> DocumentArtifact:
            async with self._render_slots:
                return await self._generate(request)

        results = await asyncio.gather(*(run(r) for r in requests), return_exceptions=return_exceptions)
        return list(results)

    def buy_sell_requests(self, deal: DealInput, generated_by: Optional[str] = None) -> list[GenerationRequest]:
        """Seller document, plus the buyer document unless a dealer sells to a private buyer."""
        snapshot = _as_snapshot(deal)
        taxonomy = DealTaxonomy.from_deal(snapshot)
        if taxonomy.deal_type != "wholesale-flip" or taxonomy.sub_type != "buy-sell":
            raise TemplateResolutionError(
                f"Buy/sell document sets need a wholesale-flip buy-sell deal, got "
                f"{taxonomy.deal_type!r}/{taxonomy.sub_type!r}",
                details={"dealType": taxonomy.deal_type, "dealType2SubType": taxonomy.sub_type},
            )
        dealer_to_private = (
            taxonomy.seller_type == PartyType.DEALER.value and taxonomy.buyer_type == PartyType.PRIVATE.value
        )
        if dealer_to_private:
            return [GenerationRequest(
                snapshot, TemplateVariant.WHOLESALE_PURCHASE_ORDER, DocumentRole.SELLER, generated_by,
            )]
        return [
            GenerationRequest(snapshot, None, DocumentRole.SELLER, generated_by),
            GenerationRequest(snapshot, None, DocumentRole.BUYER, generated_by),
        ]

    async def generate_buy_sell_set(
        self,
        deal: DealInput,
        *,
        generated_by: Optional[str] = None,
    ) -> list[DocumentArtifact]:
        return await self.generate_batch(self.buy_sell_requests(deal, generated_by))
