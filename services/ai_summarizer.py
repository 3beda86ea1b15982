"""
LangGraph-based summarizer for merged sheets.

Architecture:
- build_prompt -> generate -> validate_output state machine
- Gemini as the LLM backend
- Output guardrails (empty / oversized responses)
- Never raises: missing credentials and service errors degrade to fixed text
"""
from __future__ import annotations

import logging
from typing import Protocol, Sequence, TypedDict

import google.generativeai as genai
from langgraph.graph import END, StateGraph
from starlette.concurrency import run_in_threadpool

from models.schemas import CellValue, Grid, Row
from services.ai_config import AISettings, get_ai_settings

logger = logging.getLogger(__name__)


SUMMARY_UNAVAILABLE = "AI summary unavailable: no API key configured. Set GOOGLE_API_KEY or GEMINI_API_KEY."
SUMMARY_FAILED = "Failed to analyze the data. Check your API key or network connection."
SUMMARY_EMPTY = "Could not generate an analysis for this data."

SYSTEM_INSTRUCTION = (
    "You are an expert data analyst helping a user review financial or "
    "operational reports that were just merged into one sheet."
)


# ============================================================================
# PROMPT
# ============================================================================

def _cell_text(value: CellValue) -> str:
    return "" if value is None else str(value)


def render_row(row: Row) -> str:
    return ", ".join(_cell_text(v) for v in row)


def sample_grid(grid: Grid, max_rows: int = 50) -> tuple[Row, list[str]]:
    """Split a grid into its header row and up to ``max_rows`` rendered data rows."""
    headers = list(grid[0]) if grid else []
    return headers, [render_row(row) for row in grid[1 : 1 + max_rows]]


def build_summary_prompt(headers: Sequence[CellValue], sample_rows: Sequence[str]) -> str:
    rows_text = "\n".join(sample_rows)
    return f"""I merged several Excel files by summing the numeric values of matching cells.
Header row: {render_row(list(headers))}
First {len(sample_rows)} rows of the merged result:
{rows_text}

Give a short executive summary of this data:
1. Identify the columns that hold metrics (numbers).
2. Point out any notably high values or interesting patterns in the sample.
3. Infer from the headers what this data most likely represents.

Keep it professional and concise."""


# ============================================================================
# GEMINI CLIENT
# ============================================================================

class TextModelClient(Protocol):
    def generate(self, prompt: str) -> str: ...


class GeminiClient:
    """Client for Google's Gemini API.

    Uses centralized config from ai_config.py.
    """

    def __init__(self, settings: AISettings | None = None):
        self._settings = settings or get_ai_settings()
        self._model = None

    def _get_model(self):
        """Lazy initialization of Gemini model."""
        if self._model is None:
            api_key = self._settings.gemini.api_key
            if not api_key:
                raise ValueError("GOOGLE_API_KEY or GEMINI_API_KEY environment variable required")

            genai.configure(api_key=api_key)
            self._model = genai.GenerativeModel(
                model_name=self._settings.gemini.model_name,
                system_instruction=SYSTEM_INSTRUCTION,
                generation_config={
                    "temperature": self._settings.temperature,
                    "max_output_tokens": self._settings.max_output_tokens,
                },
            )
        return self._model

    def generate(self, prompt: str) -> str:
        response = self._get_model().generate_content(prompt)
        return response.text or ""


# ============================================================================
# LANGGRAPH WORKFLOW
# ============================================================================

class SummaryState(TypedDict):
    headers: list
    sample_rows: list[str]
    prompt: str
    summary: str
    validation_errors: list[str]


def create_summary_graph(client: TextModelClient, settings: AISettings):
    """Create the summarization workflow."""

    def build_prompt_node(state: SummaryState) -> SummaryState:
        return {
            **state,
            "prompt": build_summary_prompt(state["headers"], state["sample_rows"]),
        }

    def generate_node(state: SummaryState) -> SummaryState:
        return {
            **state,
            "summary": client.generate(state["prompt"]),
        }

    def validate_output_node(state: SummaryState) -> SummaryState:
        summary = (state.get("summary") or "").strip()
        errors = []
        if not summary:
            errors.append("Output is empty")
            summary = SUMMARY_EMPTY
        elif len(summary) > settings.max_output_length:
            errors.append(f"Output too long ({len(summary)} > {settings.max_output_length})")
            summary = summary[: settings.max_output_length]
        return {
            **state,
            "summary": summary,
            "validation_errors": errors,
        }

    workflow = StateGraph(SummaryState)

    workflow.add_node("build_prompt", build_prompt_node)
    workflow.add_node("generate", generate_node)
    workflow.add_node("validate_output", validate_output_node)

    workflow.set_entry_point("build_prompt")
    workflow.add_edge("build_prompt", "generate")
    workflow.add_edge("generate", "validate_output")
    workflow.add_edge("validate_output", END)

    return workflow.compile()


# ============================================================================
# HIGH-LEVEL API
# ============================================================================

class SheetSummarizer:
    """Summarizes a merged grid in free text."""

    def __init__(self, client: TextModelClient | None = None, settings: AISettings | None = None):
        self._settings = settings or get_ai_settings()
        self._client = client
        self._graph = None

    @property
    def available(self) -> bool:
        return self._client is not None or self._settings.gemini.available

    def _get_graph(self):
        if self._graph is None:
            client = self._client or GeminiClient(self._settings)
            self._graph = create_summary_graph(client, self._settings)
        return self._graph

    async def summarize(self, grid: Grid) -> str:
        if not self.available:
            logger.warning("[SUMMARY] No Gemini API key configured")
            return SUMMARY_UNAVAILABLE

        headers, sample_rows = sample_grid(grid, self._settings.summary_max_rows)
        initial_state: SummaryState = {
            "headers": headers,
            "sample_rows": sample_rows,
            "prompt": "",
            "summary": "",
            "validation_errors": [],
        }

        try:
            result = await run_in_threadpool(self._get_graph().invoke, initial_state)
        except Exception as e:
            logger.error(f"[SUMMARY] Gemini analysis failed: {e}")
            return SUMMARY_FAILED

        if result["validation_errors"]:
            logger.warning(f"[SUMMARY] Output guardrails: {result['validation_errors']}")
        return result["summary"]


# Singleton
_summarizer: SheetSummarizer | None = None


def get_summarizer() -> SheetSummarizer:
    """Get the summarizer singleton."""
    global _summarizer
    if _summarizer is None:
        _summarizer = SheetSummarizer()
    return _summarizer
