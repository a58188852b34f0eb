from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.exceptions import ConfigurationError
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import RAGSettings


class RAGClientManager:
    """
    Manager class to instantiate the configured RAG client.
    """

    def __init__(self, helper_config: HelperConfig, settings: RAGSettings | None = None):
        self.helper_config = helper_config
        self.settings = settings
        self.logging = helper_config.get_logger()
        self.client = self._initialize_client()

    def _get_engine_from_env(self) -> str:
        """
        Reads the RAG engine from ENV configuration.

        Returns:
            str: Capitalised engine name (e.g. "Pinecone").

        Raises:
            ConfigurationError: If RAG_ENGINE is not set.
        """
        engine = self.helper_config.get_string_val("RAG_ENGINE")
        #lowercase all and uppcercase first letter for better comparison and display
        return engine.strip().lower().capitalize()

    def _initialize_client(self) -> RAGClientInterface:
        """
        Instantiates the RAG client for the configured engine.

        Returns:
            RAGClientInterface: The instantiated client.

        Raises:
            ConfigurationError: If the engine is unsupported or cannot be imported.
        """
        engine = self._get_engine_from_env()
        class_name = f"RAGClient{engine}"
        # try to import the class from shared.clients.rag.{engine}
        try:
            module = __import__(
                f"shared.clients.rag.{engine.lower()}.{class_name}",
                fromlist=[class_name],
            )
            client_class = getattr(module, class_name)
        except (ImportError, AttributeError) as e:
            raise ConfigurationError(f"Unsupported RAG engine specified: '{engine}'. Error: {e}")
        client = client_class(helper_config=self.helper_config, settings=self.settings)
        self.logging.debug("Instantiated RAG client for engine: %s", engine)
        return client

    def get_client(self) -> RAGClientInterface:
        """
        Returns the instantiated RAG client.
        """
        return self.client
