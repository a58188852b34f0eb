from datetime import datetime, timedelta

import pytz

from shared.clients.db.DBClientInterface import DBClientInterface
from shared.clients.db.models.MetricsSample import MetricsSample
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import RAGSettings


class MetricsRecorder:
    """Append-only query metrics, aggregated on read over a rolling window."""

    def __init__(self, helper_config: HelperConfig, db_client: DBClientInterface, settings: RAGSettings):
        self.logging = helper_config.get_logger()
        self._db_client = db_client
        self._settings = settings

    async def record(self, sample: MetricsSample) -> None:
        await self._db_client.do_insert_metrics(sample)
        self.logging.debug(
            "Recorded mention query metrics: %d ms, %d candidates, confidence %.3f.",
            sample.response_time_ms, sample.message_count, sample.confidence_score,
        )

    async def summarize(self, now: datetime | None = None) -> tuple[float, int]:
        """Average latency and query count over the last metrics_window_hours.

        Args:
            now (datetime | None): End of the window, defaults to the current UTC time.

        Returns:
            tuple[float, int]: (average latency in ms, number of queries). (0.0, 0) without samples.
        """
        now = now or datetime.now(pytz.utc)
        since = now - timedelta(hours=self._settings.metrics_window_hours)
        samples = await self._db_client.do_fetch_metrics_since(since)
        if not samples:
            return 0.0, 0
        average = sum(sample.response_time_ms for sample in samples) / len(samples)
        return average, len(samples)
