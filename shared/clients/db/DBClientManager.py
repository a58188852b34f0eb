from shared.clients.db.DBClientInterface import DBClientInterface
from shared.exceptions import ConfigurationError
from shared.helper.HelperConfig import HelperConfig


class DBClientManager:
    """
    Manager class to instantiate the configured relational store client.
    """

    def __init__(self, helper_config: HelperConfig):
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self.client = self._initialize_client()

    def _get_engine_from_env(self) -> str:
        """
        Reads the DB engine from ENV configuration.

        Returns:
            str: Capitalised engine name (e.g. "Supabase").

        Raises:
            ConfigurationError: If DB_ENGINE is not set.
        """
        engine = self.helper_config.get_string_val("DB_ENGINE", default="supabase")
        return engine.strip().lower().capitalize()

    def _initialize_client(self) -> DBClientInterface:
        """
        Instantiates the DB client for the configured engine.

        Raises:
            ConfigurationError: If the engine is unsupported or cannot be imported.
        """
        engine = self._get_engine_from_env()
        class_name = f"DBClient{engine}"
        # try to import the class from shared.clients.db.{engine}
        try:
            module = __import__(
                f"shared.clients.db.{engine.lower()}.{class_name}",
                fromlist=[class_name],
            )
            client_class = getattr(module, class_name)
        except (ImportError, AttributeError) as e:
            raise ConfigurationError(f"Unsupported DB engine specified: '{engine}'. Error: {e}")
        client = client_class(helper_config=self.helper_config)
        self.logging.debug("Instantiated DB client for engine: %s", engine)
        return client

    def get_client(self) -> DBClientInterface:
        """
        Returns the instantiated DB client.
        """
        return self.client
