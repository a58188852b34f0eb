from shared.clients.db.DBClientInterface import DBClientInterface
from shared.clients.db.models.RowFilter import RowFilter
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class DBClientSupabase(DBClientInterface):
    """Supabase PostgREST client. API_KEY should be the service role key."""

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default=None, val_type="string")
        self._api_key = self.get_config_val("API_KEY", default=None, val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Supabase"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default=None),
            EnvConfig(env_key="API_KEY", val_type="string", default=None),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        return {
            "apikey": self._api_key,
            "Authorization": f"Bearer {self._api_key}",
        }

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/rest/v1/"

    def _get_endpoint_table(self, table: str) -> str:
        return f"/rest/v1/{table}"

    ##########################################
    ########### PAYLOAD BUILDER ##############
    ##########################################

    @staticmethod
    def _quote(value) -> str:
        # postgrest reserves ',', '.', ':' and parentheses inside list values
        return '"%s"' % str(value).replace('"', '\\"')

    def translate_filter(self, row_filter: RowFilter) -> tuple[str, str]:
        """
        Translates a row filter into a PostgREST query parameter.

        Returns:
            tuple[str, str]: (column, "<operator>.<value>"), e.g. ("id", "in.(\"a\",\"b\")")
        """
        if row_filter.operator == "is_null":
            return row_filter.column, "is.null"
        if row_filter.operator == "in":
            return row_filter.column, "in.(%s)" % ",".join(self._quote(v) for v in row_filter.value)
        return row_filter.column, f"{row_filter.operator}.{row_filter.value}"

    def get_select_params(self, filters: list[RowFilter] | None, columns: str, order_by: str | None, limit: int | None) -> list[tuple[str, str]]:
        params = [("select", columns)]
        params.extend(self.translate_filter(row_filter) for row_filter in (filters or []))
        if order_by:
            params.append(("order", f"{order_by}.asc"))
        if limit is not None:
            params.append(("limit", str(limit)))
        return params

    ##########################################
    ############ CORE REQUESTS ###############
    ##########################################

    async def do_select(self, table: str, filters: list[RowFilter] | None = None, columns: str = "*", order_by: str | None = None, limit: int | None = None) -> list[dict]:
        resp = await self.do_request(
            method="GET",
            endpoint=self._get_endpoint_table(table),
            params=self.get_select_params(filters, columns, order_by, limit),
            raise_on_error=True,
        )
        return resp.json()

    async def do_insert(self, table: str, row: dict, return_row: bool = False) -> dict | None:
        resp = await self.do_request(
            method="POST",
            endpoint=self._get_endpoint_table(table),
            json=row,
            additional_headers={"Prefer": "return=representation" if return_row else "return=minimal"},
            raise_on_error=True,
        )
        if not return_row:
            return None
        rows = resp.json()
        return rows[0] if isinstance(rows, list) else rows
