"""Style-matched answer generation.

Content comes from the fused candidates; tone comes from a separate,
topic-neutral search over the target user's own messages.
"""

from services.mention_rag.FusionRetriever import search_index
from shared.clients.db.models.Profile import Profile
from shared.clients.llm.LLMGateway import LLMGateway
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.models.MetadataFilter import build_sender_filter
from shared.helper.CancellationToken import CancellationToken
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import RAGSettings
from shared.models.rag import FusionCandidate

SYSTEM_PROMPT_TEMPLATE = """You are an AI assistant that helps respond to questions in the style of a specific user.
You have access to:
1. The user's relevant previous messages about the topic
2. Examples of their general writing style
3. Their profile information

Guidelines:
- Use the relevant messages to inform the content of your response
- Mimic the user's writing style, tone, and typical message length
- Consider their role and professional context
- Be consistent with their past responses
- Maintain their level of formality and use of emoji/formatting if any

Profile Information:
Name: {name}
Title: {title}
Bio: {bio}"""

USER_PROMPT_TEMPLATE = """Question: "{query}"

Relevant Previous Messages:
{relevant_content}

Writing Style Examples:
{writing_style}

Generate a response that sounds like it comes from this user, incorporating relevant information from their previous messages while matching their communication style."""


class StyleGenerator:
    def __init__(self, helper_config: HelperConfig, rag_client: RAGClientInterface, gateway: LLMGateway, settings: RAGSettings):
        self.logging = helper_config.get_logger()
        self._rag_client = rag_client
        self._gateway = gateway
        self._settings = settings

    async def fetch_style_examples(self, profile: Profile, cancel_token: CancellationToken | None = None) -> list[str]:
        """Fetch up to n_messages texts of the user, independent of the question's topic."""
        style_vector = await self._gateway.embed(self._settings.style_probe_text, cancel_token=cancel_token)
        matches = await search_index(
            self._rag_client,
            style_vector,
            build_sender_filter(profile.id),
            int(self._settings.style_top_k),
            cancel_token=cancel_token,
        )
        return [match.metadata.content for match in matches][: int(self._settings.n_messages)]

    def build_prompt(self, query: str, candidates: list[FusionCandidate], style_examples: list[str], profile: Profile) -> list[dict]:
        content_context = candidates[: int(self._settings.n_messages)]
        relevant_content = "\n".join(f"- {candidate.match.metadata.content}" for candidate in content_context)
        writing_style = "\n".join(f"- {example}" for example in style_examples)
        return [
            {
                "role": "system",
                "content": SYSTEM_PROMPT_TEMPLATE.format(
                    name=profile.full_name or "Unknown",
                    title=profile.title or "Unknown",
                    bio=profile.bio or "Not provided",
                ),
            },
            {
                "role": "user",
                "content": USER_PROMPT_TEMPLATE.format(
                    query=query,
                    relevant_content=relevant_content,
                    writing_style=writing_style,
                ),
            },
        ]

    async def generate(self, query: str, candidates: list[FusionCandidate], profile: Profile, cancel_token: CancellationToken | None = None) -> str:
        """Generate the answer in the voice of the profile's owner.

        Returns:
            str: The raw completion text.

        Raises:
            GenerationUnavailableError: If an embedding or the completion failed.
            RetrievalError: If the style search failed.
        """
        style_examples = await self.fetch_style_examples(profile, cancel_token=cancel_token)
        prompt = self.build_prompt(query, candidates, style_examples, profile)
        self.logging.debug("Generating answer for @%s with %d content and %d style messages.", profile.username, min(len(candidates), int(self._settings.n_messages)), len(style_examples))
        return await self._gateway.complete(prompt, cancel_token=cancel_token)
