"""Test the SQL analysis store against an on-disk SQLite database."""
import pytest
import pytest_asyncio
from bill_clarifier.passes.derived_metrics import derive_metrics
from bill_clarifier.passes.persistence import build_completion_update
from bill_clarifier.storage.database import close_db, create_tables, init_db
from bill_clarifier.storage.store import SqlAnalysisStore
from tests.factories import make_record


@pytest_asyncio.fixture
async def store(tmp_path):
    init_db(f"sqlite+aiosqlite:///{tmp_path / 'bills.db'}")
    await create_tables()
    yield SqlAnalysisStore()
    await close_db()


@pytest_asyncio.fixture
async def property_id(store):
    return await store.create_property("owner-1", "Casa", expected_monthly_generation_kwh=450)


async def _complete(store, analysis_id, total=98.5):
    record = make_record(total_amount=total)
    metrics = derive_metrics(record, 60, 80)
    values = build_completion_update(record, metrics, 60, 80, ["alerta"])
    await store.complete_analysis(analysis_id, values, record, "mock-model", "v2.0-abc")


class TestProperties:
    @pytest.mark.asyncio
    async def test_create_and_get(self, store, property_id):
        prop = await store.get_property(property_id)
        assert prop["name"] == "Casa"
        assert prop["expected_monthly_generation_kwh"] == 450

    @pytest.mark.asyncio
    async def test_missing(self, store):
        assert await store.get_property("00000000-0000-0000-0000-000000000000") is None

    @pytest.mark.asyncio
    async def test_list_by_owner(self, store, property_id):
        await store.create_property("owner-2", "Outra")
        props = await store.list_properties("owner-1")
        assert [p["property_id"] for p in props] == [property_id]


class TestAnalysisLifecycle:
    @pytest.mark.asyncio
    async def test_begin_creates_processing_row(self, store, property_id):
        analysis_id = await store.begin_analysis(property_id, 3, 2024, "quick", file_hash="abc")
        row = await store.get_analysis(analysis_id)
        assert row["status"] == "processing"
        assert row["file_hash"] == "abc"
        assert row["property_id"] == property_id

    @pytest.mark.asyncio
    async def test_complete_writes_row_and_raw_data(self, store, property_id):
        analysis_id = await store.begin_analysis(property_id, 3, 2024, "quick")
        await _complete(store, analysis_id)

        row = await store.get_analysis(analysis_id)
        assert row["status"] == "completed"
        assert row["minimum_possible"] == pytest.approx(57.5)
        assert row["alerts"] == ["alerta"]
        raw = await store.get_raw_data(analysis_id)
        assert raw["raw_json"]["distributor"] == "CEMIG"
        assert raw["extraction_model"] == "mock-model"

    @pytest.mark.asyncio
    async def test_fail(self, store, property_id):
        analysis_id = await store.begin_analysis(property_id, 3, 2024, "full")
        await store.fail_analysis(analysis_id, "Não foi possível processar a conta")
        row = await store.get_analysis(analysis_id)
        assert row["status"] == "error"
        assert row["error_message"] == "Não foi possível processar a conta"
        assert row["ai_analysis"] is None

    @pytest.mark.asyncio
    async def test_resubmission_overwrites_same_period(self, store, property_id):
        first = await store.begin_analysis(property_id, 3, 2024, "quick")
        await _complete(store, first)

        second = await store.begin_analysis(property_id, 3, 2024, "full", file_hash="new")
        assert second == first
        row = await store.get_analysis(second)
        assert row["status"] == "processing"
        assert row["mode"] == "full"
        assert row["minimum_possible"] is None

        await _complete(store, second, total=120.0)
        row = await store.get_analysis(second)
        assert row["total_amount"] == 120.0

    @pytest.mark.asyncio
    async def test_other_period_is_new_row(self, store, property_id):
        march = await store.begin_analysis(property_id, 3, 2024, "quick")
        april = await store.begin_analysis(property_id, 4, 2024, "quick")
        assert march != april

    @pytest.mark.asyncio
    async def test_delete(self, store, property_id):
        analysis_id = await store.begin_analysis(property_id, 3, 2024, "quick")
        await _complete(store, analysis_id)

        assert await store.delete_analysis(analysis_id)
        assert await store.get_analysis(analysis_id) is None
        assert await store.get_raw_data(analysis_id) is None
        assert not await store.delete_analysis(analysis_id)

    @pytest.mark.asyncio
    async def test_list_newest_period_first(self, store, property_id):
        await store.begin_analysis(property_id, 11, 2023, "quick")
        await store.begin_analysis(property_id, 2, 2024, "quick")
        await store.begin_analysis(property_id, 12, 2023, "quick")

        rows = await store.list_analyses(property_id)
        assert [(r["reference_month"], r["reference_year"]) for r in rows] == [
            (2, 2024), (12, 2023), (11, 2023),
        ]
        assert len(await store.list_analyses(property_id, limit=1)) == 1
