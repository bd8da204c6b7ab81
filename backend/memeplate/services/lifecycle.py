"""
Asset Lifecycle Coordinator - Keep template records and their blobs consistent

The record store and the blob store fail independently and share no
transaction. Consistency comes from call ordering plus compensating
deletes:

- create: upload, then insert. If the insert fails the new blob is
  deleted before the insert error is re-raised.
- update with a new asset: upload new, persist the record pointing at it,
  and only then delete the old blob. If persisting fails the new blob is
  deleted and the old one is left untouched.
- delete: delete the blob (failure only logged), then remove the record.

Only a write that did not commit is rolled back. RecordReloadError means
the row is stored, so the blob it references is kept.

Compensating deletes never raise; a failure leaves an orphaned blob and
an error log entry, and the caller still sees the original error.
"""

from typing import Any, List, Optional

from sqlalchemy.orm import Session

from memeplate.core.errors import CompensationFailure, NotFoundError, RecordReloadError
from memeplate.core.validator import AssetUpload, TemplateValidator
from memeplate.models.template import AssetRef, TemplateModel, TemplatePatch
from memeplate.services.blob_store import BlobStore
from memeplate.services.observability import (
    log_asset_deleted,
    log_asset_uploaded,
    log_compensation_failed,
    log_template_event,
    logger,
)
from memeplate.services.storage import TemplateDB


class AssetLifecycleCoordinator:
    """
    Orchestrate blob store and record store calls for template writes
    """

    def __init__(
        self,
        db: Session,
        blob_store: BlobStore,
        validator: Optional[TemplateValidator] = None,
    ):
        """
        Args:
            db: Record store session
            blob_store: Provider holding template images
            validator: Field validator (defaults to bounds-enforcing)
        """
        self.db = db
        self.blob_store = blob_store
        self.validator = validator or TemplateValidator()
        self.compensation_failures: List[CompensationFailure] = []

    def _load(self, template_id: str) -> TemplateModel:
        template = TemplateDB.get_template(self.db, template_id)
        if template is None:
            raise NotFoundError(template_id)
        return template

    async def _upload(self, asset: AssetUpload) -> AssetRef:
        ref = await self.blob_store.upload(asset.data, asset.content_type)
        log_asset_uploaded(
            storage_key=ref.storage_key,
            url=ref.url,
            size_bytes=len(asset.data),
            content_type=asset.content_type,
        )
        return ref

    async def _discard_blob(
        self,
        storage_key: str,
        reason: str,
        template_id: Optional[str] = None,
    ) -> Optional[CompensationFailure]:
        """
        Best-effort blob delete

        Returns:
            CompensationFailure if the delete failed, else None
        """
        try:
            found = await self.blob_store.delete(storage_key)
        except Exception as e:
            failure = CompensationFailure(
                f"Could not delete blob {storage_key} ({reason})",
                storage_key=storage_key,
                cause=e,
            )
            self.compensation_failures.append(failure)
            log_compensation_failed(storage_key, reason, e, template_id=template_id)
            return failure

        log_asset_deleted(storage_key, found=found, reason=reason)
        return None

    async def create_template(
        self,
        name: Any,
        asset: Optional[AssetUpload],
        zones: Any = None,
        tags: Any = None,
        category: Any = None,
        pixel_width: Any = None,
        pixel_height: Any = None,
    ) -> TemplateModel:
        """
        Upload the asset, then insert the template record

        Args:
            name: Template name (required)
            asset: Image bytes + content type (required)
            zones: Zone list or JSON string
            tags: Tag list or JSON string
            category: Category (defaults to "general")
            pixel_width: Natural image width
            pixel_height: Natural image height

        Returns:
            Inserted TemplateModel

        Raises:
            ValidationError: Bad fields or missing asset (nothing uploaded)
            BlobStoreError: Upload failed (nothing inserted)
            RecordStoreError: Insert failed (uploaded blob rolled back)
            RecordReloadError: Insert committed but the reload failed (blob kept)
        """
        draft = self.validator.validate_draft(
            name=name,
            zones=zones,
            tags=tags,
            category=category,
            pixel_width=pixel_width,
            pixel_height=pixel_height,
        )
        asset = self.validator.validate_asset(asset)

        ref = await self._upload(asset)

        template = TemplateModel(
            template_id=TemplateModel.generate_template_id(),
            name=draft.name,
            category=draft.category,
            pixel_width=draft.pixel_width,
            pixel_height=draft.pixel_height,
            zones=[zone.to_dict() for zone in draft.zones],
            usage_count=0,
        )
        template.set_asset(ref)
        template.set_tags(draft.tags)

        try:
            template = TemplateDB.insert_template(self.db, template)
        except RecordReloadError:
            # Row is committed and points at ref; the blob must stay
            logger.warning("template_reload_failed", storage_key=ref.storage_key, name=draft.name)
            raise
        except Exception:
            logger.warning("template_insert_failed", storage_key=ref.storage_key, name=draft.name)
            await self._discard_blob(ref.storage_key, reason="rollback")
            raise

        log_template_event(
            "template_created",
            template.template_id,
            storage_key=ref.storage_key,
            zone_count=len(draft.zones),
        )
        return template

    async def _discard_replaced(
        self,
        old_ref: Optional[AssetRef],
        new_ref: Optional[AssetRef],
        template_id: str,
    ) -> None:
        """Delete the previous blob once the record points at its replacement"""
        if old_ref is None or new_ref is None or old_ref.storage_key == new_ref.storage_key:
            return
        await self._discard_blob(old_ref.storage_key, reason="replaced", template_id=template_id)

    def _apply_patch(self, template: TemplateModel, patch: TemplatePatch) -> List[str]:
        changed = []
        if patch.name is not None:
            template.name = patch.name
            changed.append("name")
        if patch.category is not None:
            template.category = patch.category
            changed.append("category")
        if patch.pixel_width is not None:
            template.pixel_width = patch.pixel_width
            changed.append("pixel_width")
        if patch.pixel_height is not None:
            template.pixel_height = patch.pixel_height
            changed.append("pixel_height")
        if patch.zones is not None:
            template.zones = [zone.to_dict() for zone in patch.zones]
            changed.append("zones")
        if patch.tags is not None:
            template.set_tags(patch.tags)
            changed.append("tags")
        return changed

    async def update_template(
        self,
        template_id: str,
        name: Any = None,
        asset: Optional[AssetUpload] = None,
        zones: Any = None,
        tags: Any = None,
        category: Any = None,
        pixel_width: Any = None,
        pixel_height: Any = None,
    ) -> TemplateModel:
        """
        Patch template fields and optionally replace its asset

        The old blob is deleted only after the record pointing at the new
        blob has been committed.

        Raises:
            NotFoundError: Unknown template_id
            ValidationError: Bad fields or bad replacement asset
            BlobStoreError: Upload of the replacement failed (record unchanged)
            RecordStoreError: Persist failed (replacement blob rolled back)
            RecordReloadError: Persist committed but the reload failed (old blob removed)
        """
        template = self._load(template_id)
        patch = self.validator.validate_patch(
            name=name,
            zones=zones,
            tags=tags,
            category=category,
            pixel_width=pixel_width,
            pixel_height=pixel_height,
        )
        if asset is not None:
            asset = self.validator.validate_asset(asset)

        old_ref: Optional[AssetRef] = None
        new_ref: Optional[AssetRef] = None
        if asset is not None:
            new_ref = await self._upload(asset)
            old_ref = template.asset_ref

        changed = self._apply_patch(template, patch)
        if new_ref is not None:
            template.set_asset(new_ref)
            changed.append("asset")

        try:
            template = TemplateDB.replace_template(self.db, template)
        except RecordReloadError:
            # Committed: the record already points at new_ref, so only the old blob goes
            logger.warning("template_reload_failed", template_id=template_id)
            await self._discard_replaced(old_ref, new_ref, template_id)
            raise
        except Exception:
            if new_ref is not None:
                logger.warning(
                    "template_update_failed",
                    template_id=template_id,
                    storage_key=new_ref.storage_key,
                )
                await self._discard_blob(new_ref.storage_key, reason="rollback", template_id=template_id)
            raise

        await self._discard_replaced(old_ref, new_ref, template_id)

        log_template_event("template_updated", template_id, changed_fields=changed)
        return template

    async def replace_zones(self, template_id: str, zones: Any) -> TemplateModel:
        """Replace the zone list of a template (record-only change)"""
        template = self._load(template_id)
        validated = self.validator.validate_zones(zones if zones is not None else [])
        template.zones = [zone.to_dict() for zone in validated]
        template = TemplateDB.replace_template(self.db, template)
        log_template_event("template_zones_replaced", template_id, zone_count=len(validated))
        return template

    async def record_use(self, template_id: str) -> TemplateModel:
        """Increment usage_count by one"""
        template = TemplateDB.increment_usage(self.db, template_id)
        if template is None:
            raise NotFoundError(template_id)
        log_template_event("template_used", template_id, usage_count=template.usage_count)
        return template

    async def delete_template(self, template_id: str) -> dict:
        """
        Delete the template's blob, then its record

        A blob delete failure is logged and does not stop the record from
        being removed.

        Returns:
            Serialized snapshot of the removed template

        Raises:
            NotFoundError: Unknown template_id
            RecordStoreError: Record removal failed
        """
        template = self._load(template_id)
        snapshot = template.to_dict()
        storage_key = template.asset_storage_key

        await self._discard_blob(storage_key, reason="template_deleted", template_id=template_id)

        if not TemplateDB.remove_template(self.db, template_id):
            raise NotFoundError(template_id)

        log_template_event("template_deleted", template_id, storage_key=storage_key)
        return snapshot
