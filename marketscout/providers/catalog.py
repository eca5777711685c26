"""
Concrete research providers.

Each provider models a different agent framework's way of organizing the
research (a crew, a conversation, a graph, a hierarchy, a swarm). They share
the discovery pipeline in ``base`` and differ in topology, prompt and
sampling temperature.
"""

from __future__ import annotations

from typing import List, Type

from marketscout.providers.base import AgentRole, ResearchProvider, Workflow, WorkflowStage

_PROFILE = ("founding_year", "location", "focus_area")
_FUNDING = ("funding_amount", "investors")
_LISTING = ("is_public", "stock_symbol", "stock_price")


class CrewAIProvider(ResearchProvider):
    """Role-based crew working through sequential tasks."""

    name = "crewai"
    description = "CrewAI Framework Adapter"
    capabilities = (
        "Multi-agent collaboration",
        "Role-based agent specialization",
        "Sequential and parallel task execution",
        "Memory and context sharing between agents",
    )
    limitations = ("Requires OpenAI API key", "Limited to text-based data sources")
    temperature = 0.2

    def workflow(self) -> Workflow:
        return Workflow(
            topology="crew",
            agents=(
                AgentRole("Research Agent", "Senior Research Analyst", "Find reliable sources on the company"),
                AgentRole("Data Extraction Agent", "Data Specialist", "Pull structured facts out of sources"),
                AgentRole("Analysis Agent", "Investment Analyst", "Assess funding, buzz and relevance"),
            ),
            stages=(
                WorkflowStage("discovery", "Research Agent", "Searching for information about {company}.", ("website_url",)),
                WorkflowStage("source_evaluation", "Research Agent", "Evaluating source credibility for {company}.", ("news_headlines",)),
                WorkflowStage("extraction", "Data Extraction Agent", "Extracting key facts about {company}.", _PROFILE),
                WorkflowStage("data_validation", "Data Extraction Agent", "Cross-referencing funding data for {company}.", _FUNDING),
                WorkflowStage("scoring", "Analysis Agent", "Applying weighted scoring model to {company}.", ("score_breakdown",)),
                WorkflowStage("stock_check", "Analysis Agent", "Checking if {company} is publicly traded.", _LISTING),
                WorkflowStage("summary", "Analysis Agent", "Generating a profile of {company}.", ("summary",)),
            ),
            extras={"process": "sequential", "crew": "Market Research Crew"},
        )

    def system_prompt(self) -> str:
        return (
            "You are a crew of financial research analysts. The research agent gathers "
            "sources, the extraction agent records facts, and the analysis agent checks "
            "them. Report only facts you are confident about."
        )


class AutoGenProvider(ResearchProvider):
    """Conversation between a user proxy and two assistants."""

    name = "autogen"
    description = "AutoGen Framework Adapter"
    capabilities = (
        "Multi-agent conversations",
        "Tool use and function calling",
        "Customizable agent behaviors",
        "Human-in-the-loop interactions",
        "Code generation and execution",
    )
    limitations = (
        "Requires OpenAI API key",
        "Complex setup for advanced scenarios",
        "Limited built-in data processing capabilities",
    )
    temperature = 0.2

    def workflow(self) -> Workflow:
        return Workflow(
            topology="conversation",
            agents=(
                AgentRole("UserProxy", "user_proxy", "Define the research task"),
                AgentRole("ResearchAssistant", "assistant", "Gather information (temperature 0.2)"),
                AgentRole("DataAnalyst", "assistant", "Analyze gathered data (temperature 0.1)"),
            ),
            stages=(
                WorkflowStage("task_definition", "UserProxy", "Defining the research task for {company}."),
                WorkflowStage("tool_selection", "ResearchAssistant", "Selecting tools to research {company}."),
                WorkflowStage("information_gathering", "ResearchAssistant", "Gathering information about {company}.", ("website_url", "news_headlines")),
                WorkflowStage("source_verification", "ResearchAssistant", "Verifying sources for {company}.", _FUNDING),
                WorkflowStage("data_extraction", "DataAnalyst", "Extracting structured data for {company}.", _PROFILE),
                WorkflowStage("data_analysis", "DataAnalyst", "Analyzing {company}'s market position.", ("summary",)),
                WorkflowStage("stock_check", "DataAnalyst", "Checking public listing of {company}.", _LISTING),
                WorkflowStage("scoring_calculation", "DataAnalyst", "Calculating the score for {company}.", ("score_breakdown",)),
            ),
            extras={"max_rounds": 10},
        )

    def system_prompt(self) -> str:
        return (
            "You are a research assistant in a multi-agent conversation. A user proxy "
            "asks you to research a company and a data analyst reviews your answer. "
            "Answer concisely and factually."
        )


class LangGraphProvider(ResearchProvider):
    """Node graph of research, extraction and analysis."""

    name = "langgraph"
    description = "LangGraph/LangChain Framework Adapter"
    capabilities = (
        "Composable agent workflows",
        "State management and persistence",
        "Cyclical and conditional execution flows",
        "Extensive tool integration",
        "Document processing and retrieval",
    )
    limitations = (
        "Requires OpenAI API key",
        "Complex graph definition for advanced workflows",
        "Steeper learning curve than some frameworks",
    )
    temperature = 0.1

    def workflow(self) -> Workflow:
        return Workflow(
            topology="graph",
            agents=(
                AgentRole("research", "node", "Search for sources"),
                AgentRole("extraction", "node", "Extract structured fields"),
                AgentRole("analysis", "node", "Score and assess"),
            ),
            stages=(
                WorkflowStage("initial_search", "research", "Running initial search for {company}.", ("website_url",)),
                WorkflowStage("data_collection", "research", "Collecting documents about {company}.", ("news_headlines",)),
                WorkflowStage("structured_extraction", "extraction", "Extracting structured fields for {company}.", _PROFILE),
                WorkflowStage("data_validation", "extraction", "Validating funding data for {company}.", _FUNDING),
                WorkflowStage("market_analysis", "analysis", "Analyzing the market of {company}.", ("focus_area",)),
                WorkflowStage("strategic_relevance", "analysis", "Assessing strategic relevance of {company}.", ("summary",)),
                WorkflowStage("stock_check", "analysis", "Checking public listing of {company}.", _LISTING),
                WorkflowStage("final_scoring", "analysis", "Computing the final score for {company}.", ("score_breakdown",)),
            ),
            extras={"edges": [["research", "extraction"], ["extraction", "analysis"]]},
        )

    def system_prompt(self) -> str:
        return (
            "You are the research node of a company-analysis graph. Your output is "
            "parsed by an extraction node, so keep to the requested line format."
        )


class LettaAIProvider(ResearchProvider):
    """Hierarchy of a coordinator and specialist agents."""

    name = "lettaai"
    description = "LettaAI Framework Adapter"
    capabilities = (
        "Hierarchical agent organization",
        "Goal-oriented task planning",
        "Adaptive information retrieval",
        "Continuous learning from feedback",
    )
    limitations = ("Higher computational requirements", "Complex setup process")
    temperature = 0.3

    def workflow(self) -> Workflow:
        return Workflow(
            topology="hierarchy",
            agents=(
                AgentRole("Research Coordinator", "Coordinate and oversee the research process"),
                AgentRole("Data Collector", "Collect data from various sources"),
                AgentRole("Data Analyzer", "Analyze and structure collected data"),
                AgentRole("Web Scraper", "Extract data from websites"),
                AgentRole("News Reader", "Extract information from news articles"),
                AgentRole("Entity Extractor", "Extract structured entities from text"),
                AgentRole("Relevance Scorer", "Score entities based on relevance"),
            ),
            stages=(
                WorkflowStage("task_planning", "Research Coordinator", "Planning research goals for {company}."),
                WorkflowStage("task_delegation", "Research Coordinator", "Delegating research tasks for {company}."),
                WorkflowStage("source_identification", "Data Collector", "Identifying sources on {company}.", ("website_url",)),
                WorkflowStage("website_scraping", "Web Scraper", "Reading the website of {company}.", _PROFILE),
                WorkflowStage("news_analysis", "News Reader", "Reading recent news about {company}.", ("news_headlines",)),
                WorkflowStage("data_consolidation", "Data Analyzer", "Consolidating data about {company}.", _FUNDING),
                WorkflowStage("entity_extraction", "Entity Extractor", "Extracting entities for {company}.", _LISTING),
                WorkflowStage("relevance_calculation", "Relevance Scorer", "Scoring relevance of {company}.", ("score_breakdown",)),
                WorkflowStage("final_assessment", "Research Coordinator", "Writing the assessment of {company}.", ("summary",)),
            ),
            extras={
                "hierarchy": {
                    "Research Coordinator": ["Data Collector", "Data Analyzer"],
                    "Data Collector": ["Web Scraper", "News Reader"],
                    "Data Analyzer": ["Entity Extractor", "Relevance Scorer"],
                }
            },
        )

    def system_prompt(self) -> str:
        return (
            "You coordinate a team of research agents with a clear goal: build an "
            "accurate company profile. Plan, gather and consolidate before answering."
        )


class SquidAIProvider(ResearchProvider):
    """Swarm of peers passing data through shared memory."""

    name = "squidai"
    description = "SquidAI Framework Adapter"
    capabilities = (
        "Distributed task processing",
        "Autonomous agent coordination",
        "Real-time data processing",
        "Adaptive learning from feedback",
    )
    limitations = (
        "Limited support for complex reasoning tasks",
        "Requires specific data formatting",
    )
    temperature = 0.4

    def workflow(self) -> Workflow:
        return Workflow(
            topology="network",
            agents=(
                AgentRole("searcher", "web_search, data_retrieval"),
                AgentRole("extractor", "data_extraction, entity_recognition"),
                AgentRole("analyzer", "data_analysis, relevance_scoring"),
            ),
            stages=(
                WorkflowStage("search_initialization", "searcher", "Initializing search for {company}."),
                WorkflowStage("search_execution", "searcher", "Searching sources about {company}.", ("website_url", "news_headlines")),
                WorkflowStage("data_extraction", "extractor", "Extracting data for {company}.", _PROFILE + _FUNDING),
                WorkflowStage("entity_recognition", "extractor", "Recognizing listing details of {company}.", _LISTING),
                WorkflowStage("market_analysis", "analyzer", "Analyzing the market of {company}.", ("summary",)),
                WorkflowStage("relevance_scoring", "analyzer", "Scoring {company}.", ("score_breakdown",)),
            ),
            extras={"environment": "FinTech Research Environment", "memory": "shared"},
        )

    def system_prompt(self) -> str:
        return (
            "You are one agent in a distributed research network. Produce data in the "
            "exact requested format so peer agents can consume it."
        )


PROVIDER_CLASSES: List[Type[ResearchProvider]] = [
    CrewAIProvider,
    AutoGenProvider,
    LangGraphProvider,
    LettaAIProvider,
    SquidAIProvider,
]
