import json
import logging
from typing import Optional

from langchain_core.language_models import BaseChatModel
from langchain_core.output_parsers import JsonOutputParser
from langchain_core.prompts import ChatPromptTemplate

from ..config import ModelConfig
from ..llm import LLMNotConfigured, get_llm
from ..schemas import Assignment, Hint, HintLevel

logger = logging.getLogger(__name__)

NOT_CONFIGURED = (
    "LLM service is not configured. Please set the API key for your LLM provider "
    "in your environment."
)
GENERATION_FAILED = "Failed to generate hint. Please try again."
NO_QUERY_YET = "(student has not submitted a query yet)"

SYSTEM_PROMPT = """You are a hint-only assistant for a SQL learning platform.

Your role is to provide high-level guidance, debugging tips, and conceptual hints to help students learn SQL.

CRITICAL RULES:
1. NEVER provide full, runnable SQL queries
2. If the user asks for the full solution, politely refuse and offer step-by-step conceptual hints instead
3. Provide guidance using pseudo-code, English descriptions, or partial SQL patterns (not complete queries)
4. Focus on teaching concepts rather than giving answers

Always respond in valid JSON format:
{{
  "hint": "<one paragraph high-level hint addressing the student's current approach>",
  "nextSteps": ["<step 1>", "<step 2>", "<step 3>"],
  "explainWhy": "<one sentence explaining the reasoning behind this advice>"
}}

Do not include any text outside the JSON structure."""

LEVEL_INSTRUCTIONS = {
    HintLevel.LOW: "Provide a very high-level hint about the approach",
    HintLevel.MEDIUM: "Provide a medium-detail hint with conceptual guidance",
    HintLevel.HIGH: "Provide a detailed hint with pseudocode, but still no runnable SQL",
}


class HintGenerator:
    def __init__(self, config: ModelConfig, llm: Optional[BaseChatModel] = None):
        self.config = config
        self.llm = llm
        if self.llm is None:
            try:
                self.llm = get_llm(config)
            except LLMNotConfigured as e:
                logger.warning(f"{e}. Hint generation will use the fallback hints.")

    @property
    def configured(self) -> bool:
        return self.llm is not None

    def build_payload(
        self, assignment: Assignment, user_sql: Optional[str], level: HintLevel
    ) -> str:
        """
        The user message: assignment context, the student's attempt and the
        requested level, as JSON.
        """
        return json.dumps(
            {
                "assignmentTitle": assignment.title,
                "assignmentQuestion": assignment.question,
                "schema": [
                    {"table": s.table, "columns": s.columns}
                    for s in assignment.sample_schemas
                ],
                "userQuery": user_sql or NO_QUERY_YET,
                "hintLevel": level.value,
                "instruction": LEVEL_INSTRUCTIONS[level],
            }
        )

    async def generate(
        self,
        assignment: Assignment,
        user_sql: Optional[str] = None,
        level: HintLevel = HintLevel.LOW,
    ) -> Hint:
        if self.llm is None:
            return Hint(error=NOT_CONFIGURED)

        parser = JsonOutputParser()
        prompt = ChatPromptTemplate.from_messages(
            [
                ("system", SYSTEM_PROMPT),
                ("user", "{payload}"),
            ]
        )
        chain = prompt | self.llm | parser

        try:
            result = await chain.ainvoke(
                {"payload": self.build_payload(assignment, user_sql, level)}
            )
            if not isinstance(result, dict):
                raise ValueError("Invalid LLM response structure")
            hint = result.get("hint")
            next_steps = result.get("nextSteps")
            explain_why = result.get("explainWhy")
            if not hint or not next_steps or not explain_why:
                raise ValueError("Invalid LLM response structure")

            return Hint(
                hint=hint,
                next_steps=[str(s) for s in next_steps] if isinstance(next_steps, list) else [],
                explain_why=explain_why,
            )
        except Exception as e:
            logger.error(f"LLM hint generation error: {e}")
            return Hint(error=GENERATION_FAILED)


def fallback_hint(assignment: Assignment) -> Hint:
    """
    Generic hint built from the assignment metadata alone.
    """
    tables = ", ".join(s.table for s in assignment.sample_schemas)
    return Hint(
        hint=(
            f"This assignment involves the following tables: {tables}. "
            "Try to break down the problem into smaller steps."
        ),
        next_steps=[
            "Review the table schemas carefully",
            "Identify which columns you need to SELECT",
            "Consider if you need to JOIN multiple tables",
            "Think about any filtering (WHERE) or grouping (GROUP BY) needed",
        ],
        explain_why="These are general SQL query construction steps",
    )
