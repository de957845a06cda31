"""Delegation guidance appended to the Copilot system message, and tool text."""

from __future__ import annotations

DELEGATION_GUIDANCE = """You have access to Gemini (Google's AI) as an MCP tool called "gemini".
When processing requests, autonomously delegate to Gemini when it would be beneficial:

DELEGATE TO GEMINI FOR:
- Large context analysis (Gemini has massive context windows)
- Web search and current information retrieval
- Summarization of large codebases or documents
- Complex reasoning tasks that benefit from a second perspective
- Brainstorming and creative ideation

HANDLE YOURSELF:
- Simple questions with straightforward answers
- Code generation where you have sufficient context
- Tasks requiring your specific capabilities

When delegating, use Gemini's "ask-gemini" tool with clear, detailed prompts.
IMPORTANT: Always pass model: "{gemini_model}" when calling ask-gemini.
Synthesize Gemini's responses with your own analysis before returning to the user.
Always provide a unified, coherent response - don't just relay Gemini's output verbatim."""

CONTEXT_SEPARATOR = "\n\n--- Additional Context ---\n"

AUTONOMOUS_ANSWER = "Proceed autonomously - do not ask for user input."

NO_RESPONSE_TEXT = "No response generated."

TOOL_NAME = "ask-copilot-with-gemini"

TOOL_DESCRIPTION = """Send a prompt to {model} which has autonomous access to Gemini's tools.
Copilot will decide when to delegate to Gemini for heavy lifting (large context analysis,
web search, summarization, brainstorming). Returns Copilot's synthesized response.
Use this for complex analysis tasks where token arbitrage is beneficial -
Gemini handles the heavy lifting (request-based pricing) while Copilot synthesizes."""


def build_delegation_guidance(gemini_model: str) -> str:
    return DELEGATION_GUIDANCE.format(gemini_model=gemini_model)


def build_effective_prompt(prompt: str, context: str | None) -> str:
    if context:
        return f"{prompt}{CONTEXT_SEPARATOR}{context}"
    return prompt
