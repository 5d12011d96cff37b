"""
Prompt composition for code generation requests.
"""

from typing import Optional

COMPLEXITY_GUIDANCE = {
    "simple": "Generate simple, beginner-friendly code with clear comments and basic functionality.",
    "intermediate": "Generate well-structured code following best practices with proper error handling.",
    "advanced": (
        "Generate production-ready, optimized code with advanced patterns, "
        "comprehensive error handling, and performance considerations."
    ),
}


def build_system_prompt(
    language: str,
    complexity: str,
    include_tests: bool,
    include_comments: bool,
    framework: Optional[str] = None
) -> str:
    """Instructions describing the kind of code the model should produce."""
    guidance = COMPLEXITY_GUIDANCE.get(complexity, COMPLEXITY_GUIDANCE["intermediate"])
    prompt = f"You are an expert {language} developer. {guidance}"

    if framework:
        prompt += f" Use {framework} framework and follow its conventions."
    if include_comments:
        prompt += " Include detailed comments explaining the code logic."
    if include_tests:
        prompt += " Include unit tests for the generated code."

    prompt += (
        f" Follow best practices for {language}. Ensure the code is functional, "
        "well-organized, and ready to use. Only return the code, no additional "
        "explanations unless specifically requested."
    )
    return prompt


def build_generation_prompt(
    prompt: str,
    language: str,
    complexity: str,
    include_tests: bool,
    include_comments: bool,
    framework: Optional[str] = None
) -> str:
    """
    Compose the full text sent to the completion provider.

    Args:
        prompt: The user's request
        language: Target programming language
        complexity: simple, intermediate or advanced
        include_tests: Whether to ask for unit tests
        include_comments: Whether to ask for explanatory comments
        framework: Optional framework to target

    Returns:
        System instructions, the user request and a requirements summary
    """
    system_prompt = build_system_prompt(language, complexity, include_tests, include_comments, framework)
    requirements = [
        f"- Language: {language}",
        f"- Complexity: {complexity}",
        f"- Framework: {framework or 'None specified'}",
        f"- Include tests: {'Yes' if include_tests else 'No'}",
        f"- Include comments: {'Yes' if include_comments else 'No'}",
    ]
    return f"{system_prompt}\n\nUser request: {prompt}\n\nRequirements:\n" + "\n".join(requirements)
