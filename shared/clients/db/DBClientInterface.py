from abc import abstractmethod
from datetime import datetime

from shared.clients.ClientInterface import ClientInterface
from shared.clients.db.models.Channel import Channel
from shared.clients.db.models.Message import Message, MessageCreate
from shared.clients.db.models.MetricsSample import MetricsSample
from shared.clients.db.models.Profile import Profile
from shared.clients.db.models.RowFilter import RowFilter
from shared.helper.HelperConfig import HelperConfig


class DBClientInterface(ClientInterface):
    """Relational store holding messages, channels, memberships, profiles and query metrics.

    Engines implement do_select() and do_insert(); every domain read and
    write below is expressed through those two primitives.
    """

    TABLE_MESSAGES = "messages"
    TABLE_CHANNELS = "channels"
    TABLE_CHANNEL_MEMBERS = "channel_members"
    TABLE_PROFILES = "profiles"
    TABLE_METRICS = "rag_metrics"

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        """
        Returns the type of the client. E.g. "db"
        """
        return "db"

    ##########################################
    ############ CORE REQUESTS ###############
    ##########################################

    @abstractmethod
    async def do_select(self, table: str, filters: list[RowFilter] | None = None, columns: str = "*", order_by: str | None = None, limit: int | None = None) -> list[dict]:
        """
        Reads rows from a table.

        Args:
            table (str): The table name.
            filters (list[RowFilter] | None): Conditions combined with AND.
            columns (str): Comma separated column list.
            order_by (str | None): Column to sort ascending by.
            limit (int | None): Maximum number of rows.

        Returns:
            list[dict]: The raw rows.

        Raises:
            ClientRequestError: If the store rejected the request.
        """
        pass

    @abstractmethod
    async def do_insert(self, table: str, row: dict, return_row: bool = False) -> dict | None:
        """
        Inserts one row into a table.

        Args:
            table (str): The table name.
            row (dict): JSON-serialisable column values.
            return_row (bool): Return the stored row including generated columns.

        Returns:
            dict | None: The stored row if return_row is set, otherwise None.

        Raises:
            ClientRequestError: If the store rejected the request.
        """
        pass

    ##########################################
    ############### MESSAGES #################
    ##########################################

    async def do_fetch_message(self, message_id: str) -> Message | None:
        rows = await self.do_select(self.TABLE_MESSAGES, [RowFilter(column="id", operator="eq", value=message_id)], limit=1)
        return Message(**rows[0]) if rows else None

    async def do_fetch_messages_page(self, after_id: str | None = None, limit: int = 100) -> list[Message]:
        """Read one page of live (not soft-deleted) messages in ascending id order.

        Args:
            after_id (str | None): Cursor; only messages with a greater id are returned.
            limit (int): Page size.

        Returns:
            list[Message]: The page, empty when the cursor reached the end.
        """
        filters = [RowFilter(column="deleted_at", operator="is_null")]
        if after_id:
            filters.append(RowFilter(column="id", operator="gt", value=after_id))
        rows = await self.do_select(self.TABLE_MESSAGES, filters, order_by="id", limit=limit)
        return [Message(**row) for row in rows]

    async def do_fetch_messages_by_ids(self, message_ids: list[str]) -> list[Message]:
        """Read messages by id. Unknown ids are skipped."""
        if not message_ids:
            return []
        rows = await self.do_select(self.TABLE_MESSAGES, [RowFilter(column="id", operator="in", value=list(message_ids))])
        return [Message(**row) for row in rows]

    async def do_insert_message(self, message: MessageCreate) -> Message:
        row = await self.do_insert(self.TABLE_MESSAGES, message.model_dump(mode="json"), return_row=True)
        return Message(**row)

    ##########################################
    ############### CHANNELS #################
    ##########################################

    async def do_fetch_channel(self, channel_id: str) -> Channel | None:
        rows = await self.do_select(self.TABLE_CHANNELS, [RowFilter(column="id", operator="eq", value=channel_id)], columns="id,type,name", limit=1)
        return Channel(**rows[0]) if rows else None

    async def do_fetch_channels(self, channel_ids: list[str]) -> dict[str, Channel]:
        """Bulk read channels.

        Returns:
            dict[str, Channel]: Channels keyed by id. Unknown ids are absent.
        """
        if not channel_ids:
            return {}
        rows = await self.do_select(self.TABLE_CHANNELS, [RowFilter(column="id", operator="in", value=sorted(set(channel_ids)))], columns="id,type,name")
        return {row["id"]: Channel(**row) for row in rows}

    async def do_check_membership(self, channel_id: str, profile_id: str) -> bool:
        rows = await self.do_select(
            self.TABLE_CHANNEL_MEMBERS,
            [
                RowFilter(column="channel_id", operator="eq", value=channel_id),
                RowFilter(column="profile_id", operator="eq", value=profile_id),
            ],
            columns="role",
            limit=1,
        )
        return bool(rows)

    ##########################################
    ############### PROFILES #################
    ##########################################

    async def do_fetch_profile(self, profile_id: str) -> Profile | None:
        rows = await self.do_select(self.TABLE_PROFILES, [RowFilter(column="id", operator="eq", value=profile_id)], limit=1)
        return Profile(**rows[0]) if rows else None

    async def do_fetch_profiles(self, profile_ids: list[str]) -> list[Profile]:
        if not profile_ids:
            return []
        rows = await self.do_select(self.TABLE_PROFILES, [RowFilter(column="id", operator="in", value=list(profile_ids))])
        return [Profile(**row) for row in rows]

    ##########################################
    ################ METRICS #################
    ##########################################

    async def do_insert_metrics(self, sample: MetricsSample) -> None:
        await self.do_insert(self.TABLE_METRICS, sample.model_dump(mode="json"))

    async def do_fetch_metrics_since(self, since: datetime) -> list[MetricsSample]:
        rows = await self.do_select(self.TABLE_METRICS, [RowFilter(column="timestamp", operator="gte", value=since.isoformat())])
        return [MetricsSample(**row) for row in rows]
