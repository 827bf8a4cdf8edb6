import asyncio
import random
import pytest
from unittest.mock import AsyncMock
from winemint.batch_processor import BatchMintingProcessor
from winemint.exceptions import MintingInProgress
from winemint.history import MintHistory
from winemint.mock_minting import MockMintingApi
from winemint.models import MintResponse
from winemint.observers import MintingObserver
from winemint.wineries import mock_wineries


class RecordingObserver(MintingObserver):
    def __init__(self):
        self.statuses = []
        self.progress = []
        self.completed = []

    def on_progress(self, progress):
        self.progress.append(progress)

    def on_status(self, status):
        self.statuses.append(status)

    def on_complete(self, statuses):
        self.completed.append(statuses)


def _mock_api(failure_rate=0.0):
    return MockMintingApi(failure_rate=failure_rate, rng=random.Random(7), sleep=AsyncMock())


@pytest.mark.asyncio
async def test_processes_wines_in_input_order():
    observer = RecordingObserver()
    history = MintHistory()
    throttle = AsyncMock()
    processor = BatchMintingProcessor(_mock_api(), observer=observer, history=history, sleep=throttle)

    results = await processor.start(mock_wineries())

    assert [s.wine_id for s in results] == ["mock-wine-1", "mock-wine-2", "mock-wine-3"]
    assert all(s.status == "success" for s in results)
    for s in results:
        assert len(s.tx_id) == 64
        assert len(s.token_ref_id) == 56

    # pending -> minting -> success for each wine, one terminal entry per wine
    transitions = [(s.wine_id, s.status) for s in observer.statuses]
    assert transitions[:3] == [
        ("mock-wine-1", "pending"),
        ("mock-wine-1", "minting"),
        ("mock-wine-1", "success"),
    ]
    terminal = [s.wine_id for s in observer.statuses if s.is_terminal]
    assert terminal == ["mock-wine-1", "mock-wine-2", "mock-wine-3"]

    assert history.minted_assets == {"mock-wine-1", "mock-wine-2", "mock-wine-3"}
    assert len(observer.completed) == 1
    assert observer.completed[0] == results
    throttle.assert_called_with(0.5)
    assert throttle.call_count == 3

    final = observer.progress[-1]
    assert final.processed_wines == 3
    assert final.processed_wineries == 2
    assert final.total_wines == 3
    assert not processor.is_processing
    assert processor.current_progress.processed_wines == 3
    assert processor.current_progress is not processor.progress


@pytest.mark.asyncio
async def test_failed_mints_are_recorded():
    processor = BatchMintingProcessor(_mock_api(failure_rate=1.0), sleep=AsyncMock())

    results = await processor.start(mock_wineries())

    assert [s.status for s in results] == ["failed"] * 3
    assert results[0].error == "Simulated minting failure - network timeout"
    assert processor.summary() == {"total": 3, "successful": 0, "failed": 3, "pending": 0}


@pytest.mark.asyncio
async def test_mint_exception_marks_wine_failed():
    api = AsyncMock()
    api.mint_wine.side_effect = RuntimeError("queue exploded")
    processor = BatchMintingProcessor(api, sleep=AsyncMock())

    results = await processor.start(mock_wineries())

    assert results[0].status == "failed"
    assert results[0].error == "queue exploded"
    assert len(results) == 3


@pytest.mark.asyncio
async def test_second_start_is_rejected():
    release = asyncio.Event()
    api = AsyncMock()

    async def slow_mint(request):
        await release.wait()
        return MintResponse(success=True, tx_id="a" * 64, token_ref_id="b" * 56)

    api.mint_wine.side_effect = slow_mint
    processor = BatchMintingProcessor(api, sleep=AsyncMock())

    task = asyncio.create_task(processor.start(mock_wineries()))
    await asyncio.sleep(0)
    assert processor.is_processing

    with pytest.raises(MintingInProgress):
        await processor.start(mock_wineries())

    release.set()
    results = await task
    assert len(results) == 3
    assert not processor.is_processing


@pytest.mark.asyncio
async def test_stop_during_mint_halts_transitions():
    observer = RecordingObserver()
    history = MintHistory()
    api = AsyncMock()
    processor = BatchMintingProcessor(api, observer=observer, history=history, sleep=AsyncMock())

    async def mint_then_stop(request):
        processor.stop()
        await asyncio.sleep(3600)

    api.mint_wine.side_effect = mint_then_stop

    results = await processor.start(mock_wineries())

    assert api.mint_wine.call_count == 1
    assert [(s.wine_id, s.status) for s in results] == [("mock-wine-1", "minting")]
    assert history.get("mock-wine-1").status == "minting"
    assert len(observer.completed) == 1
    assert not processor.is_processing


@pytest.mark.asyncio
async def test_stop_between_wines_keeps_history():
    history = MintHistory()
    api = _mock_api()
    processor = BatchMintingProcessor(api, history=history)

    async def throttle(seconds):
        processor.stop()

    processor.sleep = throttle

    results = await processor.start(mock_wineries())

    assert [s.wine_id for s in results] == ["mock-wine-1"]
    assert history.get("mock-wine-1").status == "success"
    assert len(history) == 1
    assert api.queue_status() == []


@pytest.mark.asyncio
async def test_completion_callback_runs_on_error():
    class ExplodingObserver(RecordingObserver):
        def on_status(self, status):
            if status.status == "minting":
                raise ValueError("observer broke")
            super().on_status(status)

    observer = ExplodingObserver()
    processor = BatchMintingProcessor(_mock_api(), observer=observer, sleep=AsyncMock())

    with pytest.raises(ValueError):
        await processor.start(mock_wineries())

    assert len(observer.completed) == 1
    assert not processor.is_processing
