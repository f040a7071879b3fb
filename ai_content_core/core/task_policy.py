"""
Per-task generation policy.

Static lookup tables mapping a task tag to sampling and reasoning settings.
Deterministic tasks (fact checking, SEO scoring) run near zero temperature;
creative tasks run hot. Explicit request options always win.
"""

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Optional

from .models import GenerationOptions


RESEARCH_TASKS = frozenset({
    "topic_research",
    "blog_writing_complete",
    "trend_analysis",
    "competitor_analysis",
    "blog_writing_section",
})


@dataclass(frozen=True)
class TaskPolicy:
    """Task-keyed defaults for one provider."""
    temperatures: Dict[str, float]
    default_temperature: float = 0.7
    reasoning_efforts: Dict[str, str] = field(default_factory=dict)
    default_reasoning_effort: str = "medium"
    verbosity: Dict[str, str] = field(default_factory=dict)
    default_verbosity: str = "medium"
    thinking_budgets: Dict[str, int] = field(default_factory=dict)
    default_thinking_budget: int = 300
    search_context_sizes: Dict[str, str] = field(default_factory=dict)
    default_search_context_size: str = "medium"
    search_tasks: FrozenSet[str] = RESEARCH_TASKS

    def temperature(self, task: str, options: Optional[GenerationOptions] = None) -> float:
        if options is not None and options.temperature is not None:
            return options.temperature
        return self.temperatures.get(task, self.default_temperature)

    def reasoning_effort(self, task: str, options: Optional[GenerationOptions] = None) -> str:
        if options is not None and options.reasoning_effort:
            return options.reasoning_effort
        return self.reasoning_efforts.get(task, self.default_reasoning_effort)

    def verbosity_for(self, task: str, options: Optional[GenerationOptions] = None) -> str:
        if options is not None and options.verbosity:
            return options.verbosity
        return self.verbosity.get(task, self.default_verbosity)

    def thinking_budget(self, task: str) -> int:
        return self.thinking_budgets.get(task, self.default_thinking_budget)

    def search_context_size(self, task: str, options: Optional[GenerationOptions] = None) -> str:
        if options is not None and options.search_context_size:
            return options.search_context_size
        return self.search_context_sizes.get(task, self.default_search_context_size)

    def wants_search(self, task: str, options: Optional[GenerationOptions] = None) -> bool:
        """True when the task is research-flavored or search was requested."""
        if options is not None and options.disable_search:
            return False
        if options is not None and options.enable_web_search:
            return True
        return task in self.search_tasks


OPENAI_POLICY = TaskPolicy(
    temperatures={
        "idea_generation": 0.9,
        "title_generation": 0.8,
        "blog_writing_complete": 0.7,
        "social_post_generation": 0.8,
        "seo_analysis": 0.1,
        "topic_research": 0.3,
    },
    reasoning_efforts={
        "blog_writing_complete": "medium",
        "idea_generation": "low",
        "title_generation": "minimal",
        "blog_editing": "high",
        "seo_analysis": "minimal",
        "topic_research": "low",
        "synopsis_generation": "low",
        "outline_creation": "medium",
        "social_post_generation": "minimal",
        "image_prompt_generation": "low",
    },
    verbosity={
        "blog_writing_complete": "high",
        "idea_generation": "low",
        "title_generation": "low",
        "synopsis_generation": "medium",
        "outline_creation": "medium",
        "social_post_generation": "low",
        "seo_analysis": "low",
        "blog_editing": "medium",
        "image_prompt_generation": "low",
    },
)


GOOGLE_POLICY = TaskPolicy(
    temperatures={
        "idea_generation": 0.9,
        "title_generation": 0.8,
        "blog_writing_complete": 0.7,
        "social_post_generation": 0.8,
        "blog_editing": 0.3,
        "seo_analysis": 0.1,
        "synopsis_generation": 0.6,
        "outline_creation": 0.5,
        "image_prompt_generation": 0.8,
    },
    thinking_budgets={
        "blog_writing_complete": 800,
        "idea_generation": 200,
        "title_generation": 0,  # disabled for speed
        "synopsis_generation": 300,
        "outline_creation": 500,
        "blog_editing": 600,
        "seo_analysis": 100,
        "social_post_generation": 0,
        "image_prompt_generation": 200,
    },
    search_tasks=frozenset({"topic_research", "trend_analysis", "competitor_analysis"}),
)


PERPLEXITY_POLICY = TaskPolicy(
    temperatures={
        "topic_research": 0.2,
        "competitor_analysis": 0.3,
        "trend_analysis": 0.3,
        "fact_checking": 0.0,
        "academic_research": 0.1,
        "quick_research": 0.2,
    },
    default_temperature=0.2,
    reasoning_efforts={
        "topic_research": "medium",
        "competitor_analysis": "high",
        "trend_analysis": "medium",
        "fact_checking": "low",
        "academic_research": "high",
    },
    search_context_sizes={
        "topic_research": "high",
        "competitor_analysis": "high",
        "trend_analysis": "medium",
        "fact_checking": "low",
        "quick_research": "low",
        "academic_research": "high",
    },
    # every Perplexity model is a search model
    search_tasks=frozenset(),
)


ROLE_INSTRUCTIONS = {
    "blog_writing_complete": "You are an expert content writer who creates engaging, SEO-optimized blog posts.",
    "idea_generation": "You are a creative strategist who generates innovative and actionable content ideas.",
    "title_generation": "You are a copywriting expert who creates compelling, click-worthy headlines.",
    "synopsis_generation": "You are a content strategist who writes clear, engaging summaries.",
    "outline_creation": "You are a content strategist who creates well-structured, logical outlines.",
    "seo_analysis": "You are an SEO expert who analyzes content for search optimization.",
    "blog_editing": "You are an experienced editor who improves content clarity and engagement.",
    "social_post_generation": "You are a social media expert who creates engaging platform-specific content.",
    "image_prompt_generation": "You are a visual creative who writes detailed, artistic image descriptions.",
}
DEFAULT_ROLE_INSTRUCTION = "You are a helpful AI assistant."

TASK_INSTRUCTIONS = {
    "blog_writing_complete": (
        "Write a comprehensive blog post that:\n"
        "- Starts with a compelling hook\n"
        "- Uses clear headers and scannable formatting\n"
        "- Provides valuable, actionable information\n"
        "- Includes relevant examples and insights\n"
        "- Ends with a strong call to action\n"
        "- Is optimized for SEO naturally"
    ),
    "idea_generation": (
        "Generate ideas that are:\n"
        "- Fresh and original\n"
        "- Relevant to the target audience\n"
        "- Actionable and specific\n"
        "- Diverse in scope and approach\n"
        "- Backed by current trends when applicable"
    ),
    "title_generation": (
        "Create titles that:\n"
        "- Grab attention immediately\n"
        "- Clearly convey value proposition\n"
        "- Are SEO-friendly but natural\n"
        "- Match the content tone\n"
        "- Are appropriate length for the platform"
    ),
    "seo_analysis": (
        "Analyze the content for:\n"
        "- Keyword optimization opportunities\n"
        "- Content structure and readability\n"
        "- Meta description effectiveness\n"
        "- Internal linking possibilities\n"
        "- Technical SEO considerations"
    ),
}

VERTICAL_CONTEXTS = {
    "hospitality": (
        "Focus on hotels, restaurants, travel, and guest experience. Consider seasonal trends, "
        "customer service excellence, and revenue management strategies."
    ),
    "healthcare": (
        "Address healthcare providers, patient care, medical compliance, and healthcare technology. "
        "Ensure accuracy, sensitivity, and compliance considerations."
    ),
    "tech": (
        "Cover technology trends, software solutions, digital transformation, and innovation. "
        "Use appropriate technical depth for the audience."
    ),
    "athletics": (
        "Focus on sports, fitness, athlete performance, and sports business. "
        "Consider both professional and recreational contexts."
    ),
}


def has_vertical(options: GenerationOptions) -> bool:
    """A vertical of "all" means no industry focus."""
    return bool(options.vertical) and options.vertical != "all"


def build_system_instruction(task: str, options: GenerationOptions) -> str:
    """Compose role, task, industry and custom instructions.

    Args:
        task: Task tag of the request
        options: Request options (vertical, system_instruction)

    Returns:
        Instruction blocks separated by blank lines
    """
    role = ROLE_INSTRUCTIONS.get(task, DEFAULT_ROLE_INSTRUCTION)
    if has_vertical(options):
        role += f" You have deep expertise in the {options.vertical} industry."

    blocks = [role]
    if task in TASK_INSTRUCTIONS:
        blocks.append(TASK_INSTRUCTIONS[task])
    if has_vertical(options) and options.vertical in VERTICAL_CONTEXTS:
        blocks.append(VERTICAL_CONTEXTS[options.vertical])
    if options.system_instruction:
        blocks.append(options.system_instruction)
    return "\n\n".join(blocks)


def build_prompt(prompt: str, options: GenerationOptions) -> str:
    """Prefix the prompt with context and industry lines when present."""
    text = prompt
    if options.context:
        text = f"Context:\n{options.context}\n\nTask: {text}"
    if has_vertical(options):
        text = f"Industry: {options.vertical}\n\n{text}"
    return text
