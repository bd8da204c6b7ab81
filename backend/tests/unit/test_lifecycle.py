"""
Unit Tests for AssetLifecycleCoordinator

Uses a real sqlite session and an in-memory blob store so call ordering
between the two stores can be observed.
"""

from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from memeplate.core.errors import (
    BlobStoreError,
    NotFoundError,
    RecordReloadError,
    RecordStoreError,
    ValidationError,
)
from memeplate.core.validator import AssetUpload
from memeplate.services.lifecycle import AssetLifecycleCoordinator
from memeplate.services.storage import TemplateDB


NEW_PNG = b"\x89PNG\r\n\x1a\nnew-image"


def _persist_recorder(events, fail=False):
    """Wrap TemplateDB.replace_template so persists show up in `events`"""
    original = TemplateDB.replace_template

    def _replace(db, template):
        if fail:
            db.rollback()
            events.append(("persist_failed",))
            raise RecordStoreError("Failed to save template: database is locked")
        result = original(db, template)
        events.append(("persist", template.asset_storage_key))
        return result

    return _replace


def _connection_dropped():
    return OperationalError("SELECT templates", {}, Exception("connection dropped"))


def _committed_asset_keys(session_factory):
    """What another connection sees in the record store"""
    other = session_factory()
    try:
        return TemplateDB.list_asset_keys(other)
    finally:
        other.close()


@pytest.fixture
def coordinator(test_db_session, fake_blob_store):
    return AssetLifecycleCoordinator(db=test_db_session, blob_store=fake_blob_store)


async def _create(coordinator, png_upload, sample_zones, **overrides):
    fields = dict(
        name="Drake",
        asset=png_upload,
        zones=sample_zones,
        tags=["drake", "reaction"],
        category="reaction",
        pixel_width="1200",
        pixel_height="1200",
    )
    fields.update(overrides)
    return await coordinator.create_template(**fields)


class TestCreate:
    @pytest.mark.asyncio
    async def test_upload_then_insert(self, coordinator, fake_blob_store, png_upload, sample_zones):
        template = await _create(coordinator, png_upload, sample_zones)

        assert fake_blob_store.upload_calls == [template.asset_storage_key]
        assert template.asset_url == f"https://cdn.test/{template.asset_storage_key}"
        assert template.usage_count == 0
        assert template.tags == ["drake", "reaction"]
        assert [zone["zIndex"] for zone in template.zones] == [0, 1]
        assert template.zones[1]["fontSize"] == 40
        assert TemplateDB.get_template(coordinator.db, template.template_id) is not None

    @pytest.mark.asyncio
    async def test_defaults(self, coordinator, png_upload):
        template = await coordinator.create_template(name="Blank", asset=png_upload)

        assert template.category == "general"
        assert template.zones == []
        assert template.tags == []
        assert template.pixel_width is None

    @pytest.mark.asyncio
    async def test_invalid_fields_upload_nothing(self, coordinator, fake_blob_store, png_upload):
        with pytest.raises(ValidationError, match="Template name is required"):
            await coordinator.create_template(name="  ", asset=png_upload)

        with pytest.raises(ValidationError):
            await coordinator.create_template(
                name="Drake",
                asset=png_upload,
                zones=[{"kind": "text", "x": 0.9, "y": 0, "width": 0.5, "height": 0.1}],
            )

        assert fake_blob_store.upload_calls == []

    @pytest.mark.asyncio
    async def test_missing_asset(self, coordinator, fake_blob_store):
        with pytest.raises(ValidationError, match="No image file uploaded"):
            await coordinator.create_template(name="Drake", asset=None)

        assert fake_blob_store.upload_calls == []

    @pytest.mark.asyncio
    async def test_upload_failure_inserts_nothing(self, coordinator, fake_blob_store, png_upload, sample_zones):
        fake_blob_store.fail_upload = True

        with pytest.raises(BlobStoreError):
            await _create(coordinator, png_upload, sample_zones)

        assert TemplateDB.count_templates(coordinator.db) == 0

    @pytest.mark.asyncio
    async def test_insert_failure_rolls_back_blob(self, coordinator, fake_blob_store, png_upload, sample_zones):
        insert_error = RecordStoreError("Failed to insert template: disk full")

        with patch.object(TemplateDB, "insert_template", side_effect=insert_error):
            with pytest.raises(RecordStoreError) as exc_info:
                await _create(coordinator, png_upload, sample_zones)

        assert exc_info.value is insert_error
        assert fake_blob_store.delete_calls == fake_blob_store.upload_calls
        assert fake_blob_store.blobs == {}
        assert coordinator.compensation_failures == []

    @pytest.mark.asyncio
    async def test_failed_rollback_keeps_original_error(
        self, coordinator, fake_blob_store, png_upload, sample_zones
    ):
        insert_error = RecordStoreError("Failed to insert template: disk full")
        fake_blob_store.fail_delete = True

        with patch.object(TemplateDB, "insert_template", side_effect=insert_error):
            with pytest.raises(RecordStoreError) as exc_info:
                await _create(coordinator, png_upload, sample_zones)

        assert exc_info.value is insert_error
        assert len(coordinator.compensation_failures) == 1
        failure = coordinator.compensation_failures[0]
        assert failure.storage_key == fake_blob_store.upload_calls[0]
        assert isinstance(failure.cause, BlobStoreError)

    @pytest.mark.asyncio
    async def test_reload_failure_after_commit_keeps_blob(
        self, coordinator, fake_blob_store, png_upload, sample_zones, session_factory
    ):
        with patch.object(coordinator.db, "refresh", side_effect=_connection_dropped()):
            with pytest.raises(RecordReloadError):
                await _create(coordinator, png_upload, sample_zones)

        storage_key = fake_blob_store.upload_calls[0]
        assert fake_blob_store.delete_calls == []
        assert storage_key in fake_blob_store.blobs
        assert [key for _, key in _committed_asset_keys(session_factory)] == [storage_key]


class TestUpdate:
    @pytest.mark.asyncio
    async def test_fields_only(self, coordinator, fake_blob_store, png_upload, sample_zones):
        template = await _create(coordinator, png_upload, sample_zones)

        updated = await coordinator.update_template(
            template.template_id,
            name="Drake Hotline",
            tags='["hotline"]',
        )

        assert updated.name == "Drake Hotline"
        assert updated.tags == ["hotline"]
        assert updated.category == "reaction"
        assert len(updated.zones) == 2
        assert fake_blob_store.delete_calls == []
        assert len(fake_blob_store.upload_calls) == 1

    @pytest.mark.asyncio
    async def test_old_blob_deleted_after_persist(self, coordinator, fake_blob_store, png_upload, sample_zones):
        template = await _create(coordinator, png_upload, sample_zones)
        old_key = template.asset_storage_key
        fake_blob_store.events.clear()

        with patch.object(TemplateDB, "replace_template", side_effect=_persist_recorder(fake_blob_store.events)):
            updated = await coordinator.update_template(
                template.template_id,
                asset=AssetUpload(data=NEW_PNG, content_type="image/png", filename="new.png"),
            )

        new_key = updated.asset_storage_key
        assert new_key != old_key
        assert fake_blob_store.events == [
            ("upload", new_key),
            ("persist", new_key),
            ("delete", old_key),
        ]
        assert old_key not in fake_blob_store.blobs
        assert fake_blob_store.blobs[new_key] == NEW_PNG

    @pytest.mark.asyncio
    async def test_persist_failure_keeps_old_asset(self, coordinator, fake_blob_store, png_upload, sample_zones):
        template = await _create(coordinator, png_upload, sample_zones)
        template_id = template.template_id
        old_key = template.asset_storage_key
        fake_blob_store.events.clear()

        with patch.object(
            TemplateDB,
            "replace_template",
            side_effect=_persist_recorder(fake_blob_store.events, fail=True),
        ):
            with pytest.raises(RecordStoreError):
                await coordinator.update_template(
                    template_id,
                    name="Renamed",
                    asset=AssetUpload(data=NEW_PNG, content_type="image/png"),
                )

        new_key = fake_blob_store.upload_calls[-1]
        assert fake_blob_store.events == [
            ("upload", new_key),
            ("persist_failed",),
            ("delete", new_key),
        ]
        assert old_key in fake_blob_store.blobs
        assert new_key not in fake_blob_store.blobs

        stored = TemplateDB.get_template(coordinator.db, template_id)
        assert stored.asset_storage_key == old_key
        assert stored.name == "Drake"

    @pytest.mark.asyncio
    async def test_reload_failure_after_commit_keeps_new_blob(
        self, coordinator, fake_blob_store, png_upload, sample_zones, session_factory
    ):
        template = await _create(coordinator, png_upload, sample_zones)
        old_key = template.asset_storage_key

        with patch.object(coordinator.db, "refresh", side_effect=_connection_dropped()):
            with pytest.raises(RecordReloadError):
                await coordinator.update_template(
                    template.template_id,
                    asset=AssetUpload(data=NEW_PNG, content_type="image/png"),
                )

        new_key = fake_blob_store.upload_calls[-1]
        assert [key for _, key in _committed_asset_keys(session_factory)] == [new_key]
        assert fake_blob_store.blobs[new_key] == NEW_PNG
        assert fake_blob_store.delete_calls == [old_key]

    @pytest.mark.asyncio
    async def test_old_blob_delete_failure_is_not_fatal(
        self, coordinator, fake_blob_store, png_upload, sample_zones
    ):
        template = await _create(coordinator, png_upload, sample_zones)
        old_key = template.asset_storage_key
        fake_blob_store.fail_delete = True

        updated = await coordinator.update_template(
            template.template_id,
            asset=AssetUpload(data=NEW_PNG, content_type="image/png"),
        )

        assert updated.asset_storage_key != old_key
        assert [failure.storage_key for failure in coordinator.compensation_failures] == [old_key]

    @pytest.mark.asyncio
    async def test_unknown_template(self, coordinator, fake_blob_store, png_upload):
        with pytest.raises(NotFoundError):
            await coordinator.update_template("missing", name="x", asset=png_upload)

        assert fake_blob_store.upload_calls == []

    @pytest.mark.asyncio
    async def test_invalid_replacement_asset(self, coordinator, fake_blob_store, png_upload, sample_zones):
        template = await _create(coordinator, png_upload, sample_zones)

        with pytest.raises(ValidationError):
            await coordinator.update_template(
                template.template_id,
                asset=AssetUpload(data=b"text", content_type="text/plain"),
            )

        assert len(fake_blob_store.upload_calls) == 1


class TestDelete:
    @pytest.mark.asyncio
    async def test_removes_blob_and_record(self, coordinator, fake_blob_store, png_upload, sample_zones):
        template = await _create(coordinator, png_upload, sample_zones)
        template_id = template.template_id
        storage_key = template.asset_storage_key

        snapshot = await coordinator.delete_template(template_id)

        assert snapshot["id"] == template_id
        assert snapshot["assetRef"]["storageKey"] == storage_key
        assert fake_blob_store.delete_calls == [storage_key]
        assert TemplateDB.get_template(coordinator.db, template_id) is None

    @pytest.mark.asyncio
    async def test_blob_failure_still_removes_record(
        self, coordinator, fake_blob_store, png_upload, sample_zones
    ):
        template = await _create(coordinator, png_upload, sample_zones)
        template_id = template.template_id
        fake_blob_store.fail_delete = True

        await coordinator.delete_template(template_id)

        assert TemplateDB.get_template(coordinator.db, template_id) is None
        assert len(coordinator.compensation_failures) == 1

    @pytest.mark.asyncio
    async def test_unknown_template(self, coordinator, fake_blob_store):
        with pytest.raises(NotFoundError):
            await coordinator.delete_template("missing")

        assert fake_blob_store.delete_calls == []


class TestZonesAndUsage:
    @pytest.mark.asyncio
    async def test_replace_zones(self, coordinator, png_upload, sample_zones):
        template = await _create(coordinator, png_upload, sample_zones)

        updated = await coordinator.replace_zones(
            template.template_id,
            [{"type": "image", "x": 0, "y": 0, "width": 0.5, "height": 0.5}],
        )

        assert len(updated.zones) == 1
        assert updated.zones[0]["kind"] == "image"
        assert updated.zones[0]["zIndex"] == 0

    @pytest.mark.asyncio
    async def test_replace_zones_rejects_out_of_bounds(self, coordinator, png_upload, sample_zones):
        template = await _create(coordinator, png_upload, sample_zones)

        with pytest.raises(ValidationError):
            await coordinator.replace_zones(
                template.template_id,
                [{"kind": "text", "x": 0.5, "y": 0.5, "width": 0.6, "height": 0.1}],
            )

    @pytest.mark.asyncio
    async def test_record_use(self, coordinator, png_upload, sample_zones):
        template = await _create(coordinator, png_upload, sample_zones)

        await coordinator.record_use(template.template_id)
        used = await coordinator.record_use(template.template_id)

        assert used.usage_count == 2

    @pytest.mark.asyncio
    async def test_record_use_unknown(self, coordinator):
        with pytest.raises(NotFoundError):
            await coordinator.record_use("missing")
