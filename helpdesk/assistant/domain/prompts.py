"""
Assistant Prompt Builders
=========================

Builds the text prompts sent to the generative backend.

Following DRY principle - all prompt wording lives in this module.
"""

from typing import Protocol, Sequence

from pydantic import BaseModel, Field, field_validator


DEFAULT_PERSONA = """You are a helpful AI support assistant for the Mintrax AI platform.
You help users with their questions about the platform, troubleshooting, and general support.
Be friendly, professional, and concise in your responses."""

DEFAULT_FAQ_INSTRUCTION = (
    "Use this FAQ knowledge to answer user questions when relevant. "
    "If the user's question matches any FAQ, provide that answer but in a natural, "
    "conversational way."
)

DEFAULT_FALLBACK_RESPONSE = "I apologize, but I couldn't generate a response. Please try again."

NO_HISTORY_MARKER = "(No previous conversation)"


class QuestionAnswer(Protocol):
    question: str
    answer: str


class Exchange(Protocol):
    message: str
    response: str


class AssistantPromptConfig(BaseModel):
    """
    Tunable assistant wording, loaded from the assistant YAML file.

    Every field has a built-in default so a missing file is not an error.
    """
    persona: str = Field(default=DEFAULT_PERSONA)
    faq_instruction: str = Field(default=DEFAULT_FAQ_INSTRUCTION)
    fallback_response: str = Field(default=DEFAULT_FALLBACK_RESPONSE)

    @field_validator("persona", "faq_instruction", "fallback_response")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        """Blank wording would silently degrade every prompt."""
        if not v or not v.strip():
            raise ValueError("prompt text must not be blank")
        return v.strip()


class ChatPromptComposer:
    """
    Builds the chat prompt from persona, FAQ knowledge, recent history and the new message.

    Pure function of its inputs. `history` must be ordered oldest-first;
    only the last `history_limit` turns are rendered.
    """

    FAQ_HEADING = "FAQ Knowledge Base:"
    HISTORY_HEADING = "Previous conversation history:"

    @classmethod
    def compose(
        cls,
        persona: str,
        faq_entries: Sequence[QuestionAnswer],
        history: Sequence[Exchange],
        new_message: str,
        history_limit: int = 5,
        faq_instruction: str = DEFAULT_FAQ_INSTRUCTION,
    ) -> str:
        """Render the full prompt text."""
        sections = [persona.strip()]

        if faq_entries:
            sections.append(cls._render_faq(faq_entries, faq_instruction))

        sections.append(cls._render_history(history, history_limit))
        sections.append(f"Current user message: {new_message}")
        sections.append("Provide a helpful response:")

        return "\n\n".join(sections)

    @classmethod
    def _render_faq(cls, faq_entries: Sequence[QuestionAnswer], instruction: str) -> str:
        lines = [cls.FAQ_HEADING]
        for index, faq in enumerate(faq_entries, 1):
            lines.append(f"{index}. Q: {faq.question}\n   A: {faq.answer}")
        lines.append(instruction)
        return "\n".join(lines)

    @classmethod
    def _render_history(cls, history: Sequence[Exchange], history_limit: int) -> str:
        if not history:
            return f"{cls.HISTORY_HEADING}\n{NO_HISTORY_MARKER}"

        recent = list(history)[-history_limit:] if history_limit > 0 else []
        exchanges = [f"User: {turn.message}\nAssistant: {turn.response}" for turn in recent]
        return "\n".join([cls.HISTORY_HEADING, "\n\n".join(exchanges)])


class FaqExtractionPromptBuilder:
    """Builds the prompt asking the backend to pull Q/A pairs out of a document."""

    TEMPLATE = """Please analyze the document at {reference} and extract all FAQ (Frequently Asked Questions) information.

For each FAQ item, extract:
1. The question
2. The answer

Return the results in JSON format as an array of objects with "question" and "answer" fields.

Example format:
[
  {{
    "question": "What is the platform about?",
    "answer": "The platform is a support ticketing system..."
  }}
]

If the document is not accessible or doesn't contain FAQ information, return an empty array: []"""

    @classmethod
    def build_prompt(cls, document_reference: str) -> str:
        return cls.TEMPLATE.format(reference=document_reference)


class FaqLearningPromptBuilder:
    """Builds the prompt asking the backend whether an exchange belongs in the FAQ."""

    TEMPLATE = """Based on this user question and AI answer, determine if this should be added to the FAQ knowledge base.

User Question: {question}
AI Answer: {answer}

If this is a commonly asked question that would be useful to save for future reference, return it in JSON format:
{{
  "question": "Refined version of the user question",
  "answer": "Clear, concise answer"
}}

If this is too specific, conversational, or not suitable for FAQ, return: {{ "shouldSave": false }}

Only save questions that are:
- General platform or feature questions
- Troubleshooting common issues
- How-to questions
- Policy or procedure questions

Do NOT save:
- Personal questions
- Context-dependent questions
- Greetings or small talk
- Questions about specific user data"""

    @classmethod
    def build_prompt(cls, question: str, answer: str) -> str:
        return cls.TEMPLATE.format(question=question, answer=answer)
