"""
Тесты обёртки function node: вход от хоста, запись результата.
"""

import asyncio
import base64

import pytest

from conftest import FakeEngine
from ocr_node.node import (
    ItemInputProvider,
    StaticInputProvider,
    compute_statistics,
    run_ocr_node,
)
from ocr_node.schemas import OCROptions


def _options(languages=("eng",), retries=1):
    return OCROptions(languages=list(languages), retries=retries, preprocessing=False)


def _run(provider, options=None, engine=None, sleep=None, **kwargs) -> dict:
    engine = engine or FakeEngine()
    return asyncio.run(
        run_ocr_node(
            provider,
            options,
            worker_factory=engine.create_worker,
            sleep=sleep,
            **kwargs,
        )
    )


def test_success_record_scenario(fake_sleep):
    engine = FakeEngine(outcomes=[RuntimeError("flaky"), "HELLO"])
    provider = StaticInputProvider.from_bytes(b"img", "image/png")

    item = _run(provider, _options(retries=2), engine=engine, sleep=fake_sleep)

    result = item["json"]
    assert result["success"] is True
    assert result["text"] == "HELLO"
    assert result["languages"] == ["eng"]
    assert result["mimeType"] == "image/png"
    assert result["statistics"]["textLength"] == 5
    assert result["statistics"]["wordCount"] == 1
    assert "error" not in result
    assert "cleanupErrors" not in result
    assert len(engine.submissions) == 2
    assert len(fake_sleep.calls) == 1
    assert engine.live_workers == 0


def test_failure_record_scenario(fake_sleep):
    engine = FakeEngine(default_outcome=RuntimeError("timeout"))
    provider = StaticInputProvider.from_bytes(b"img", "image/png")

    item = _run(provider, _options(["eng", "fra"], retries=1), engine=engine, sleep=fake_sleep)

    result = item["json"]
    assert result["success"] is False
    assert result["error"] == "timeout"
    assert "text" not in result
    assert "RecognitionError" in result["stack"]
    assert result["timestamp"].endswith("Z")
    assert len(engine.created) == 2
    assert engine.live_workers == 0
    assert len(engine.submissions) == 1


def test_initialization_failure_record():
    engine = FakeEngine(fail_create=("fra",))
    provider = StaticInputProvider.from_bytes(b"img")

    result = _run(provider, _options(["eng", "fra"]), engine=engine)["json"]

    assert result["success"] is False
    assert "fra" in result["error"]
    assert engine.live_workers == 0
    assert engine.submissions == []


def test_missing_binary_is_failure_record():
    engine = FakeEngine()

    result = _run(ItemInputProvider([{"json": {}}]), engine=engine)["json"]

    assert result["success"] is False
    assert "бинарных данных" in result["error"]
    assert engine.created == []


def test_invalid_base64_is_failure_record():
    result = _run(StaticInputProvider("@@not-base64@@", "image/png"))["json"]

    assert result["success"] is False
    assert "base64" in result["error"]


def test_line_wrapped_base64_is_accepted():
    engine = FakeEngine(outcomes=["OK"])
    raw = bytes(range(256))
    wrapped = base64.encodebytes(raw).decode()
    assert "\n" in wrapped

    result = _run(StaticInputProvider(wrapped, "image/png"), _options(), engine=engine)["json"]

    assert result["success"] is True
    assert engine.submissions == [("eng", raw)]


def test_configuration_error_is_failure_record():
    engine = FakeEngine()
    provider = StaticInputProvider.from_bytes(b"img")

    result = _run(provider, _options(retries=0), engine=engine)["json"]

    assert result["success"] is False
    assert engine.created == []


def test_cleanup_errors_attached_to_success():
    engine = FakeEngine(outcomes=["OK"], fail_terminate=("eng",))
    provider = StaticInputProvider.from_bytes(b"img")

    result = _run(provider, _options(), engine=engine)["json"]

    assert result["success"] is True
    assert result["text"] == "OK"
    assert len(result["cleanupErrors"]) == 1


def test_timeout_is_failure_record_and_releases_workers():
    engine = FakeEngine(recognize_delay=10)
    provider = StaticInputProvider.from_bytes(b"img")

    result = _run(provider, _options(["eng", "fra"]), engine=engine, timeout=0.05)["json"]

    assert result["success"] is False
    assert "0.05" in result["error"]
    assert engine.live_workers == 0
    assert "cleanupErrors" not in result


def test_timeout_record_keeps_cleanup_errors():
    engine = FakeEngine(recognize_delay=10, fail_terminate=("eng",))
    provider = StaticInputProvider.from_bytes(b"img")

    result = _run(provider, _options(), engine=engine, timeout=0.05)["json"]

    assert result["success"] is False
    assert "0.05" in result["error"]
    assert engine.terminate_calls == ["eng"]
    assert len(result["cleanupErrors"]) == 1
    assert "eng" in result["cleanupErrors"][0]


def test_item_provider_reads_first_item():
    data = base64.b64encode(b"img").decode()
    items = [
        {"json": {}, "binary": {"data": {"data": data, "mimeType": "image/jpeg"}}},
        {"json": {}, "binary": {"data": {"data": "ignored"}}},
    ]

    binary = ItemInputProvider(items).get_binary()

    assert binary.data == data
    assert binary.mime_type == "image/jpeg"


@pytest.mark.parametrize("items", [[], [{"binary": {}}], [{"binary": {"data": {"data": ""}}}]])
def test_item_provider_without_data(items):
    assert ItemInputProvider(items).get_binary() is None


def test_default_options_follow_mime_type(fake_sleep):
    engine = FakeEngine(outcomes=["OK"])
    seen = []

    def preprocessor(image, options):
        seen.append(options)
        return image

    provider = StaticInputProvider.from_bytes(b"img", "image/jpeg")
    result = asyncio.run(
        run_ocr_node(
            provider,
            worker_factory=engine.create_worker,
            preprocessor=preprocessor,
            sleep=fake_sleep,
        )
    )["json"]

    assert result["success"] is True
    assert seen[0].contrast == 1.2


def test_statistics():
    stats = compute_statistics("Hello world\nsecond  line\n")

    assert stats.text_length == 25
    assert stats.line_count == 3
    assert stats.word_count == 4
    assert stats.timestamp.endswith("Z")


def test_statistics_of_empty_text():
    stats = compute_statistics("")

    assert stats.text_length == 0
    assert stats.line_count == 1
    assert stats.word_count == 0
