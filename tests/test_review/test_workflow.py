"""End-to-end: workbook grid -> extraction -> review -> stored record."""

import pytest

from strata.persistence.schema import RecordSchemaValidator
from strata.pipeline.extractor import StrataExtractor
from strata.pipeline.grid import Grid
from strata.review.phases import ReviewPhase
from strata.review.session import ReviewEditModel
from strata.signals.emitter import SignalEmitter
from strata.signals.types import SignalType


@pytest.mark.asyncio
async def test_clean_sheet_round_trip(model, storage, borehole_grid):
    draft, processed = StrataExtractor().extract_for_review(
        borehole_grid, "bore_01.xlsx", project="site-a", bore_id="BH-01"
    )
    model.open(draft, processed)
    record = await model.confirm_and_save()

    payload = storage.writes[0][1]
    assert RecordSchemaValidator().validate_record(payload).valid
    assert payload["metadata"]["tags"] == ["strata-extraction", "imported"]
    assert [
        (l["type"], l["startDepth"], l["endDepth"]) for l in payload["metadata"]["strataLayers"]
    ] == [("clay", 0.0, 5.0), ("sand", 5.0, 10.0), ("gravel", 10.0, 15.0)]
    assert record.metadata.strata_summary == (
        "3 layers identified, 3 unique materials, total depth: 15 ft"
    )


@pytest.mark.asyncio
async def test_metric_sheet_with_missing_material(adapter, storage, tmp_path):
    grid = Grid.from_values(
        [
            ["Depth (m)", "Lithology"],
            [0, "Topsoil"],
            [1, None],
            [2, "Clay"],
            [3, "Sand"],
        ]
    )
    draft, processed = StrataExtractor().extract_for_review(
        grid, "bh07.xlsx", project="site-b", bore_id="BH-07"
    )
    assert processed.must_force_review

    ledger = tmp_path / "signals.jsonl"
    emitter = SignalEmitter("bh07", ledger_path=ledger)

    review = ReviewEditModel(adapter, signals=emitter)
    review.open(draft, processed)
    assert review.validate_user_edits().errors == ["Layer 2: material is required"]

    review.update_material(1, "Silty Clay")
    review.acknowledge_review()
    await review.confirm_and_save()

    assert review.phase == ReviewPhase.SAVED
    layers = storage.writes[0][1]["metadata"]["strataLayers"]
    assert [l["startDepth"] for l in layers] == [0.0, 3.28, 6.56, 9.84]
    assert layers[-1]["endDepth"] == 13.12
    assert [l["confidence"] for l in layers] == ["medium", "high", "medium", "medium"]
    assert layers[1]["type"] == "silty clay"
    assert layers[1]["userEdited"] is True

    replayed = SignalEmitter.load_ledger(ledger)
    assert replayed[-1].signal_type == SignalType.DRAFT_SAVED
    assert [s.sequence for s in replayed] == list(range(1, len(replayed) + 1))
