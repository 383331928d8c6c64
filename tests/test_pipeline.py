import threading

import pytest

from backend.flexipdf import pipeline
from backend.flexipdf.pdf_utils import LoadError, add_page, copy_pages, create_document, load_document, save_document
from backend.flexipdf.pipeline import ProcessingOptions, process_documents
from backend.flexipdf.reducer import CompressionLevel
from backend.flexipdf.splitter import BYTES_PER_MB, InvalidBudgetError, PartitionCancelledError

from pdf_samples import build_pdf, page_total, page_widths


def single_page_size(payload: bytes) -> int:
    trial = create_document()
    for page in copy_pages(load_document(payload), [0]):
        add_page(trial, page)
    return len(save_document(trial))


def test_small_result_is_not_split(monkeypatch) -> None:
    def fail(*args, **kwargs):
        raise AssertionError("partitioning must not run")

    monkeypatch.setattr(pipeline, "partition_document", fail)
    payload = build_pdf([5_000, 5_000])

    result = process_documents(
        [("relazione.pdf", payload)],
        ProcessingOptions(level=CompressionLevel.TARGET, target_mb=2.5),
    )

    assert len(result.parts) == 1
    assert result.parts[0].name == "relazione.pdf"
    assert result.parts[0].size == len(result.parts[0].data)
    assert result.split is False
    assert page_total(result.parts[0].data) == 2


def test_target_mode_splits_oversized_result() -> None:
    payload = build_pdf([20_000] * 6)
    size = single_page_size(payload)
    target_mb = (2 * size + size // 10) / BYTES_PER_MB

    result = process_documents(
        [("scan.pdf", payload)],
        ProcessingOptions(level="target", target_mb=target_mb, base_name="Invio"),
    )

    assert result.split is True
    assert [part.name for part in result.parts] == ["Invio_001.pdf", "Invio_002.pdf", "Invio_003.pdf"]
    widths: list[int] = []
    for part in result.parts:
        assert part.size <= result.budget_bytes
        widths.extend(page_widths(part.data))
    assert widths == page_widths(payload)


@pytest.mark.parametrize("level", [CompressionLevel.LOW, CompressionLevel.MEDIUM, CompressionLevel.HIGH])
def test_only_target_mode_splits(level) -> None:
    payload = build_pdf([20_000] * 4)

    result = process_documents([("scan.pdf", payload)], ProcessingOptions(level=level, target_mb=0.01))

    assert result.split is False
    assert [part.name for part in result.parts] == ["scan.pdf"]


def test_invalid_budget_fails_before_loading(monkeypatch) -> None:
    def fail(*args, **kwargs):
        raise AssertionError("documents must not be loaded")

    monkeypatch.setattr(pipeline, "load_document", fail)
    with pytest.raises(InvalidBudgetError):
        process_documents([("a.pdf", build_pdf([100]))], ProcessingOptions(level="target", target_mb=-1))


def test_merge_combines_inputs_in_order() -> None:
    first = build_pdf([1_000, 1_000], first_width=100)
    second = build_pdf([1_000], first_width=200)

    result = process_documents(
        [("uno.pdf", first), ("due.pdf", second)],
        ProcessingOptions(level="medium", merge=True),
        merged_base_name="Documento_Unito",
    )

    assert result.merged is True
    assert [part.name for part in result.parts] == ["Documento_Unito.pdf"]
    assert page_widths(result.parts[0].data) == [100, 101, 200]
    assert result.original_size == len(first) + len(second)


def test_without_merge_only_first_file_is_processed() -> None:
    first = build_pdf([1_000, 1_000], first_width=100)
    second = build_pdf([1_000], first_width=200)

    result = process_documents([("uno.pdf", first), ("due.pdf", second)], ProcessingOptions(merge=False))

    assert result.merged is False
    assert [part.name for part in result.parts] == ["uno.pdf"]
    assert page_widths(result.parts[0].data) == [100, 101]


def test_broken_input_aborts_run() -> None:
    with pytest.raises(LoadError):
        process_documents(
            [("ok.pdf", build_pdf([100])), ("bad.pdf", b"not a pdf")],
            ProcessingOptions(merge=True),
        )


def test_no_inputs_is_an_error() -> None:
    with pytest.raises(ValueError):
        process_documents([], ProcessingOptions())


def test_stage_callback_sees_each_stage() -> None:
    payload = build_pdf([20_000] * 3)
    size = single_page_size(payload)
    stages: list[str] = []

    process_documents(
        [("a.pdf", payload), ("b.pdf", payload)],
        ProcessingOptions(level="target", target_mb=(size * 1.5) / BYTES_PER_MB, merge=True),
        stage_callback=lambda stage, detail: stages.append(stage),
    )

    assert stages == ["loading", "merging", "compressing", "splitting"]


def test_reduction_ratio_is_reported() -> None:
    payload = build_pdf([2_000] * 3)
    result = process_documents([("a.pdf", payload)], ProcessingOptions())
    assert result.original_size == len(payload)
    assert result.total_size == sum(part.size for part in result.parts)
    assert 0.0 <= result.reduction_ratio < 1.0


@pytest.mark.parametrize("cancel_at", ["loading", "merging", "compressing"])
def test_cancel_between_stages_stops_the_run(cancel_at: str) -> None:
    payload = build_pdf([2_000] * 2)
    cancel_event = threading.Event()
    stages: list[str] = []

    def on_stage(stage: str, detail: str) -> None:
        stages.append(stage)
        if stage == cancel_at:
            cancel_event.set()

    with pytest.raises(PartitionCancelledError):
        process_documents(
            [("a.pdf", payload), ("b.pdf", payload)],
            ProcessingOptions(level=CompressionLevel.MEDIUM, merge=True),
            stage_callback=on_stage,
            cancel_event=cancel_event,
        )

    assert stages[-1] == cancel_at
