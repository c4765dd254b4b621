"""
AI insight generation for a Reddit thread.

Gemini is called through its OpenAI-compatible endpoint with the `openai` SDK.
The model is asked for raw JSON; its reply is unwrapped from optional code
fences, the first `{...}` region is parsed, and the result is validated into
an AnalysisResult that tolerates missing or malformed fields.
"""

import json
import logging
import re
from typing import Any, Dict, Optional

import openai
from pydantic import ValidationError

from threadlens.core.config import Settings, get_settings
from threadlens.core.exceptions import AIAnalysisException, AIErrorCodes, AIResponseParseError
from threadlens.models.schemas import AnalysisMetadata, AnalysisResult, RedditThread

logger = logging.getLogger(__name__)

CODE_FENCE_PATTERN = re.compile(r"```(?:json)?\n?")
JSON_OBJECT_PATTERN = re.compile(r"\{[\s\S]*\}")

ANALYST_ROLE = (
    "You are an expert social media analyst. Analyze this Reddit discussion deeply "
    "and provide specific, actionable insights."
)

RESPONSE_FORMAT_INSTRUCTIONS = """Provide a JSON response with this EXACT structure (no markdown, just raw JSON):
{
  "tldr": "A detailed 3-4 sentence summary capturing the main discussion points and overall tone",
  "sentiment": {
    "overall": "positive" | "negative" | "neutral" | "mixed",
    "score": 0-100,
    "reasoning": "Brief explanation of the sentiment"
  },
  "topComments": [
    {
      "author": "username",
      "text": "comment preview (first 200 chars)",
      "score": number,
      "insight": "Why this comment is important"
    }
  ],
  "themes": [
    {
      "name": "Theme name",
      "description": "What this theme is about",
      "prevalence": "high" | "medium" | "low"
    }
  ],
  "keyOpinions": [
    {
      "opinion": "Specific viewpoint from comments",
      "support": "Quote or paraphrase supporting this",
      "sentiment": "positive" | "negative" | "neutral"
    }
  ],
  "consensus": {
    "type": "strong_consensus" | "weak_consensus" | "divided" | "controversial" | "exploratory",
    "description": "Detailed explanation of agreement/disagreement patterns",
    "agreementLevel": 0-100
  },
  "insights": [
    {
      "title": "Insight title",
      "description": "Detailed insight",
      "actionable": true/false
    }
  ],
  "controversialPoints": ["Specific points of disagreement"],
  "emergingIdeas": ["New or interesting ideas mentioned"],
  "practicalAdvice": ["Actionable advice from the discussion"]
}

CRITICAL INSTRUCTIONS:
- Extract ACTUAL content from the comments, not generic statements
- Use SPECIFIC quotes and examples from the discussion
- Identify REAL themes based on what people are actually discussing
- Be CONCRETE and SPECIFIC in all fields
- Make insights ACTIONABLE when possible
- The topComments array should include 3-5 highest-scored or most insightful comments
- Return ONLY valid JSON, no markdown code blocks"""


def build_thread_content(thread: RedditThread) -> str:
    """Render the post and its comments as plain text for the prompt."""
    comment_blocks = [
        f"Comment #{index} by u/{comment.author} [{comment.score} upvotes]:\n{comment.body}"
        for index, comment in enumerate(thread.comments, start=1)
    ]
    return (
        f"Title: {thread.title}\n\n"
        f"Original Post by u/{thread.author} [{thread.score} upvotes]:\n"
        f"{thread.selftext or '(No post body)'}\n\n"
        f"Comments ({len(thread.comments)} analyzed out of {thread.num_comments} total):\n"
        + "\n\n---\n\n".join(comment_blocks)
    ).strip()


def build_prompt(thread: RedditThread) -> str:
    return f"{ANALYST_ROLE}\n\n{build_thread_content(thread)}\n\n{RESPONSE_FORMAT_INSTRUCTIONS}"


def extract_json_payload(text: Optional[str]) -> Dict[str, Any]:
    """
    Pull the JSON object out of a model reply.

    Raises:
        AIResponseParseError: When no `{...}` region exists or it is not valid JSON
    """
    json_text = (text or "").strip()

    if json_text.startswith("```"):
        json_text = CODE_FENCE_PATTERN.sub("", json_text)

    match = JSON_OBJECT_PATTERN.search(json_text)
    if not match:
        raise AIResponseParseError("Could not parse AI response as JSON")

    try:
        return json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise AIResponseParseError(f"Could not parse AI response as JSON: {e.msg}") from e


class InsightGenerator:
    """
    Produces an AnalysisResult for a thread with a single model call.
    An OpenAI-compatible async client may be injected; otherwise one is
    created for the configured Gemini endpoint.
    """

    def __init__(self, settings: Optional[Settings] = None, client: Optional[Any] = None):
        self.settings = settings or get_settings()
        self.client = client

    def _get_client(self) -> Any:
        if self.client is None:
            self.client = openai.AsyncOpenAI(
                api_key=self.settings.gemini_api_key,
                base_url=self.settings.gemini_base_url,
            )
        return self.client

    async def generate(self, thread: RedditThread) -> AnalysisResult:
        """
        Analyze a thread.

        Args:
            thread: Normalized thread with its comments

        Returns:
            AnalysisResult with metadata describing the thread

        Raises:
            AIAnalysisException: Missing API key, provider error, or unparsable reply
        """
        model = self.settings.gemini_model

        if not self.settings.gemini_api_key:
            logger.error("Gemini analysis requested without GEMINI_API_KEY")
            raise AIAnalysisException(
                "GEMINI_API_KEY environment variable is not set",
                model=model,
                error_code=AIErrorCodes.API_KEY_MISSING,
            )

        prompt = build_prompt(thread)
        logger.info(f"Calling {model} with {len(thread.comments)} comments ({len(prompt)} prompt chars)")

        try:
            response = await self._get_client().chat.completions.create(
                model=model,
                messages=[{"role": "user", "content": prompt}],
                temperature=self.settings.gemini_temperature,
            )
        except openai.OpenAIError as e:
            logger.error(f"Gemini API error: {type(e).__name__}: {e}")
            raise AIAnalysisException(
                str(e) or type(e).__name__,
                model=model,
                error_code=AIErrorCodes.PROVIDER_ERROR,
            )

        text = response.choices[0].message.content if response.choices else None
        logger.info(f"AI response received: {(text or '')[:200]}")

        try:
            payload = extract_json_payload(text)
            analysis = AnalysisResult.model_validate(payload)
        except (AIResponseParseError, ValidationError) as e:
            logger.error(f"Failed to parse AI response: {e}")
            raise AIAnalysisException(
                str(e),
                model=model,
                error_code=AIErrorCodes.PARSING_FAILED,
                debug_info={"response_preview": (text or "")[:500]},
            )

        return analysis.model_copy(update={"metadata": AnalysisMetadata.from_thread(thread)})
