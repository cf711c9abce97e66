from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping

from ..core.exceptions import ParentPilotError, RecordNotFoundError, UnknownTaskTypeError, UpstreamError
from ..core.logging import get_logger
from ..core.metrics import increment_agent_error
from ..schemas.agents import (
    AgentRecord,
    AgentResponse,
    AgentTask,
    AgentTaskStatus,
    ArtifactPriority,
    ChildProfile,
    Insight,
    Recommendation,
)
from .base import AgentContext, AgentSupport
from .parsing import parse_list

logger = get_logger(name=__name__)


class SpecialistTaskType(str, Enum):
    MILESTONE_ASSESSMENT = "milestone_assessment"
    PROGRESS_REVIEW = "progress_review"
    DELAY_SCREENING = "delay_screening"
    LEARNING_ASSESSMENT = "learning_assessment"
    ACTIVITY_PLANNING = "activity_planning"
    SKILL_EVALUATION = "skill_evaluation"
    BEHAVIOR_ASSESSMENT = "behavior_assessment"
    TRIGGER_ANALYSIS = "trigger_analysis"
    STRATEGY_DEVELOPMENT = "strategy_development"
    SOCIAL_SKILLS_ASSESSMENT = "social_skills_assessment"
    PEER_INTERACTION_PLANNING = "peer_interaction_planning"
    EMOTIONAL_DEVELOPMENT_EVALUATION = "emotional_development_evaluation"
    ACADEMIC_ASSESSMENT = "academic_assessment"
    SCHOOL_READINESS_EVALUATION = "school_readiness_evaluation"
    EDUCATIONAL_PLANNING = "educational_planning"


@dataclass(slots=True, frozen=True)
class InsightSpec:
    key: str
    insight_type: str
    title: str
    instruction: str
    points: tuple[str, ...]
    confidence: float
    capability: str


@dataclass(slots=True, frozen=True)
class RecommendationSpec:
    key: str
    recommendation_type: str
    title: str
    instruction: str
    points: tuple[str, ...]
    capability: str
    priority: ArtifactPriority = ArtifactPriority.MEDIUM


@dataclass(slots=True, frozen=True)
class TaskHandler:
    label: str
    insight: str
    recommendation: str


@dataclass(slots=True, frozen=True)
class SpecialistProfile:
    kind: str
    domain: str
    role: str
    focus: tuple[str, ...]
    tone: str
    capabilities: tuple[tuple[str, str], ...]
    insights: tuple[InsightSpec, ...]
    recommendations: tuple[RecommendationSpec, ...]
    tasks: Mapping[SpecialistTaskType, TaskHandler]

    def insight(self, key: str) -> InsightSpec:
        return next(item for item in self.insights if item.key == key)

    def recommendation(self, key: str) -> RecommendationSpec:
        return next(item for item in self.recommendations if item.key == key)


def _render(instruction: str, points: tuple[str, ...], child: ChildProfile) -> str:
    lines = [
        instruction.format(name=child.name, age=child.age),
        "",
        "Child profile:",
        f"- Age: {child.age}",
        f"- Grade: {child.grade or 'not specified'}",
        f"- Interests: {', '.join(child.interests) or 'various areas'}",
        f"- Strengths: {', '.join(child.strengths) or 'various areas'}",
        f"- Challenges: {', '.join(child.challenges) or 'none noted'}",
        f"- Learning style: {child.learning_style or 'not specified'}",
        "",
        "Address:",
    ]
    lines += [f"{index}. {point}" for index, point in enumerate(points, start=1)]
    return "\n".join(lines)


def _build_profiles() -> dict[str, SpecialistProfile]:
    development = SpecialistProfile(
        kind="Development Tracker",
        domain="development tracking",
        role=(
            "You are a Development Tracker AI agent specializing in child development monitoring. "
            "Your role is to help parents track their child's developmental milestones and identify "
            "potential areas of concern."
        ),
        focus=(
            "Age-appropriate developmental milestones",
            "Progress tracking and analysis",
            "Early identification of potential delays",
            "Evidence-based developmental guidance",
            "Creating actionable development plans",
        ),
        tone="Keep responses practical, supportive, and evidence-based.",
        capabilities=(
            ("milestone_tracking", "Track developmental milestones and progress"),
            ("progress_analysis", "Analyze development progress and identify areas of concern"),
            ("development_alerts", "Generate alerts for potential developmental delays"),
        ),
        insights=(
            InsightSpec(
                key="milestones",
                insight_type="milestone_analysis",
                title="Developmental Milestone Analysis for {name}",
                instruction="Analyze the developmental milestones for a {age}-year-old child named {name}.",
                points=(
                    "Current developmental status",
                    "Expected milestones for this age",
                    "Areas of strength",
                    "Areas needing attention",
                    "Recommended focus areas",
                ),
                confidence=0.85,
                capability="milestone_tracking",
            ),
            InsightSpec(
                key="progress",
                insight_type="progress_analysis",
                title="Development Progress Analysis for {name}",
                instruction="Analyze the development progress for {name} ({age} years old).",
                points=(
                    "Progress patterns",
                    "Developmental trajectory",
                    "Areas of accelerated development",
                    "Areas needing additional support",
                    "Predictions for upcoming milestones",
                ),
                confidence=0.8,
                capability="progress_analysis",
            ),
            InsightSpec(
                key="delays",
                insight_type="delay_screening",
                title="Developmental Screening for {name}",
                instruction="Conduct a developmental screening for {name} ({age} years old).",
                points=(
                    "Areas of concern across physical, cognitive, language and social-emotional development",
                    "Risk factors",
                    "Recommended monitoring",
                    "When to seek professional evaluation",
                ),
                confidence=0.75,
                capability="development_alerts",
            ),
        ),
        recommendations=(
            RecommendationSpec(
                key="milestones",
                recommendation_type="milestone_support",
                title="Developmental Milestone Support for {name}",
                instruction="Generate milestone-based recommendations for {name} ({age} years old).",
                points=(
                    "Supporting the current developmental stage",
                    "Preparing for upcoming milestones",
                    "Building on existing strengths",
                    "Addressing any areas of concern",
                ),
                capability="milestone_tracking",
            ),
            RecommendationSpec(
                key="intervention",
                recommendation_type="developmental_intervention",
                title="Developmental Support Plan for {name}",
                instruction="Assess if {name} ({age} years old) needs any developmental interventions.",
                points=(
                    "Early intervention strategies, if needed",
                    "Professional evaluation needs",
                    "Home-based support activities",
                    "Monitoring and follow-up",
                ),
                capability="development_alerts",
            ),
            RecommendationSpec(
                key="enrichment",
                recommendation_type="enrichment_activities",
                title="Enrichment Activities for {name}",
                instruction="Generate enrichment recommendations for {name} ({age} years old).",
                points=(
                    "Learning activities",
                    "Social development opportunities",
                    "Physical development activities",
                    "Creative expression",
                    "Cognitive development games",
                ),
                capability="progress_analysis",
            ),
        ),
        tasks={
            SpecialistTaskType.MILESTONE_ASSESSMENT: TaskHandler("Milestone assessment", "milestones", "milestones"),
            SpecialistTaskType.PROGRESS_REVIEW: TaskHandler("Progress review", "progress", "enrichment"),
            SpecialistTaskType.DELAY_SCREENING: TaskHandler("Delay screening", "delays", "intervention"),
        },
    )

    learning = SpecialistProfile(
        kind="Learning Coach",
        domain="learning coaching",
        role=(
            "You are a Learning Coach AI agent specializing in personalized learning strategies and "
            "educational activities. Your role is to help parents optimize their child's learning "
            "experience and provide engaging educational activities."
        ),
        focus=(
            "Personalized learning strategies based on the child's interests and learning style",
            "Age-appropriate educational activities",
            "Skill development and assessment",
            "Learning optimization and engagement",
            "Educational resource recommendations",
        ),
        tone="Keep responses practical, engaging, and tailored to the child's specific needs and interests.",
        capabilities=(
            ("activity_recommendations", "Provide personalized learning activity recommendations"),
            ("learning_optimization", "Optimize learning strategies based on child's style and needs"),
            ("skill_assessment", "Assess and track learning skills and progress"),
        ),
        insights=(
            InsightSpec(
                key="patterns",
                insight_type="learning_pattern_analysis",
                title="Learning Pattern Analysis for {name}",
                instruction="Analyze the learning patterns of {name} ({age} years old).",
                points=(
                    "Preferred learning modalities",
                    "Attention span and focus patterns",
                    "Motivation drivers",
                    "Optimal learning conditions",
                ),
                confidence=0.85,
                capability="learning_optimization",
            ),
            InsightSpec(
                key="skills",
                insight_type="learning_skill_assessment",
                title="Learning Skill Assessment for {name}",
                instruction="Assess the learning skills of {name} ({age} years old).",
                points=(
                    "Literacy and numeracy foundations",
                    "Problem-solving and critical thinking",
                    "Memory and information processing",
                    "Skills to strengthen next",
                ),
                confidence=0.8,
                capability="skill_assessment",
            ),
            InsightSpec(
                key="engagement",
                insight_type="engagement_analysis",
                title="Learning Engagement Analysis for {name}",
                instruction="Analyze what keeps {name} ({age} years old) engaged in learning.",
                points=(
                    "Topics and formats that hold attention",
                    "Signs of disengagement",
                    "How interests can anchor new material",
                    "Balance between challenge and success",
                ),
                confidence=0.8,
                capability="activity_recommendations",
            ),
        ),
        recommendations=(
            RecommendationSpec(
                key="activity",
                recommendation_type="learning_activities",
                title="Personalized Learning Activities for {name}",
                instruction="Recommend personalized learning activities for {name} ({age} years old).",
                points=(
                    "Activities built around the child's interests",
                    "Materials needed",
                    "Time required",
                    "Learning objectives",
                ),
                capability="activity_recommendations",
            ),
            RecommendationSpec(
                key="strategy",
                recommendation_type="learning_strategies",
                title="Learning Strategy Plan for {name}",
                instruction="Create a learning strategy plan for {name} ({age} years old).",
                points=(
                    "Study routines that fit the learning style",
                    "Techniques for focus and retention",
                    "How the parent can support practice",
                    "Ways to measure progress",
                ),
                capability="learning_optimization",
            ),
            RecommendationSpec(
                key="skill",
                recommendation_type="skill_development",
                title="Skill Development Plan for {name}",
                instruction="Create a skill development plan for {name} ({age} years old).",
                points=(
                    "Priority skills to build",
                    "Practice activities for each skill",
                    "Milestones that show improvement",
                    "Resources that help",
                ),
                capability="skill_assessment",
            ),
        ),
        tasks={
            SpecialistTaskType.LEARNING_ASSESSMENT: TaskHandler("Learning assessment", "patterns", "strategy"),
            SpecialistTaskType.ACTIVITY_PLANNING: TaskHandler("Activity planning", "engagement", "activity"),
            SpecialistTaskType.SKILL_EVALUATION: TaskHandler("Skill evaluation", "skills", "skill"),
        },
    )

    behavior = SpecialistProfile(
        kind="Behavior Analyst",
        domain="behavior analysis",
        role=(
            "You are a Behavior Analyst AI agent specializing in child behavior analysis and management. "
            "Your role is to help parents understand their child's behavior patterns and provide effective "
            "management strategies."
        ),
        focus=(
            "Understanding behavior patterns and triggers",
            "Evidence-based behavior management strategies",
            "Positive reinforcement techniques",
            "Age-appropriate behavior expectations",
            "Creating supportive behavior environments",
        ),
        tone="Keep responses practical, supportive, and focused on positive approaches to behavior management.",
        capabilities=(
            ("behavior_pattern_analysis", "Analyze child behavior patterns and identify triggers"),
            ("behavior_management_strategies", "Provide evidence-based behavior management strategies"),
            ("positive_reinforcement_planning", "Design positive reinforcement and reward systems"),
        ),
        insights=(
            InsightSpec(
                key="patterns",
                insight_type="behavior_pattern_analysis",
                title="Behavior Pattern Analysis for {name}",
                instruction="Analyze the behavior patterns of {name} ({age} years old).",
                points=(
                    "Typical behaviors for this age",
                    "Recurring challenging behaviors",
                    "Positive behaviors to encourage",
                    "Times and settings where behavior changes",
                ),
                confidence=0.8,
                capability="behavior_pattern_analysis",
            ),
            InsightSpec(
                key="triggers",
                insight_type="trigger_analysis",
                title="Behavior Trigger Analysis for {name}",
                instruction="Identify likely behavior triggers for {name} ({age} years old).",
                points=(
                    "Emotional triggers",
                    "Environmental triggers",
                    "Routine and transition triggers",
                    "Early warning signs",
                ),
                confidence=0.75,
                capability="behavior_pattern_analysis",
            ),
            InsightSpec(
                key="environment",
                insight_type="environmental_analysis",
                title="Environmental Factor Analysis for {name}",
                instruction="Analyze environmental factors shaping the behavior of {name} ({age} years old).",
                points=(
                    "Home environment and routines",
                    "Sleep, nutrition and activity levels",
                    "Screen time and stimulation",
                    "Family dynamics",
                ),
                confidence=0.8,
                capability="behavior_management_strategies",
            ),
        ),
        recommendations=(
            RecommendationSpec(
                key="management",
                recommendation_type="behavior_management",
                title="Behavior Management Strategies for {name}",
                instruction="Recommend behavior management strategies for {name} ({age} years old).",
                points=(
                    "Preventive strategies",
                    "In-the-moment responses",
                    "Consistent consequences",
                    "Communication techniques",
                ),
                capability="behavior_management_strategies",
                priority=ArtifactPriority.HIGH,
            ),
            RecommendationSpec(
                key="reinforcement",
                recommendation_type="positive_reinforcement",
                title="Positive Reinforcement Plan for {name}",
                instruction="Design a positive reinforcement plan for {name} ({age} years old).",
                points=(
                    "Behaviors to reinforce",
                    "Meaningful rewards",
                    "Reward schedule",
                    "How to phase rewards out",
                ),
                capability="positive_reinforcement_planning",
            ),
            RecommendationSpec(
                key="environmental",
                recommendation_type="environmental_optimization",
                title="Environmental Optimization for {name}",
                instruction="Recommend environmental changes that support better behavior for {name} ({age} years old).",
                points=(
                    "Routine adjustments",
                    "Physical space changes",
                    "Transition supports",
                    "Calm-down resources",
                ),
                capability="behavior_management_strategies",
            ),
        ),
        tasks={
            SpecialistTaskType.BEHAVIOR_ASSESSMENT: TaskHandler("Behavior assessment", "patterns", "management"),
            SpecialistTaskType.TRIGGER_ANALYSIS: TaskHandler("Trigger analysis", "triggers", "environmental"),
            SpecialistTaskType.STRATEGY_DEVELOPMENT: TaskHandler("Strategy development", "environment", "reinforcement"),
        },
    )

    social = SpecialistProfile(
        kind="Social Skills Mentor",
        domain="social skills mentoring",
        role=(
            "You are a Social Skills Mentor AI agent specializing in child social development and emotional "
            "intelligence. Your role is to help parents support their child's social skills, peer "
            "relationships, and emotional development."
        ),
        focus=(
            "Age-appropriate social skills development",
            "Peer interaction strategies and friendship building",
            "Emotional intelligence and empathy development",
            "Conflict resolution and communication skills",
            "Social confidence and self-esteem building",
        ),
        tone="Keep responses supportive, practical, and focused on positive social development.",
        capabilities=(
            ("social_skills_assessment", "Assess and track social skills development"),
            ("peer_interaction_guidance", "Provide guidance for peer interactions and friendships"),
            ("emotional_intelligence_development", "Support emotional intelligence and empathy development"),
        ),
        insights=(
            InsightSpec(
                key="social",
                insight_type="social_skills_analysis",
                title="Social Skills Analysis for {name}",
                instruction="Analyze the social skills of {name} ({age} years old).",
                points=(
                    "Communication skills",
                    "Cooperation and sharing",
                    "Conflict resolution",
                    "Social confidence",
                ),
                confidence=0.8,
                capability="social_skills_assessment",
            ),
            InsightSpec(
                key="peer",
                insight_type="peer_interaction_analysis",
                title="Peer Interaction Analysis for {name}",
                instruction="Analyze how {name} ({age} years old) interacts with peers.",
                points=(
                    "Friendship patterns",
                    "Group play behavior",
                    "Handling disagreements",
                    "Opportunities for connection",
                ),
                confidence=0.75,
                capability="peer_interaction_guidance",
            ),
            InsightSpec(
                key="emotional",
                insight_type="emotional_intelligence_analysis",
                title="Emotional Intelligence Analysis for {name}",
                instruction="Analyze the emotional intelligence of {name} ({age} years old).",
                points=(
                    "Recognizing own emotions",
                    "Emotional regulation",
                    "Empathy for others",
                    "Expressing feelings",
                ),
                confidence=0.8,
                capability="emotional_intelligence_development",
            ),
        ),
        recommendations=(
            RecommendationSpec(
                key="social",
                recommendation_type="social_skills_development",
                title="Social Skills Development Plan for {name}",
                instruction="Create a social skills development plan for {name} ({age} years old).",
                points=(
                    "Skills to practice",
                    "Role-play scenarios",
                    "Everyday practice opportunities",
                    "Signs of progress",
                ),
                capability="social_skills_assessment",
            ),
            RecommendationSpec(
                key="peer",
                recommendation_type="peer_interaction_support",
                title="Peer Interaction Support for {name}",
                instruction="Recommend ways to support peer interactions for {name} ({age} years old).",
                points=(
                    "Playdate and group activity ideas",
                    "Friendship-building strategies",
                    "Coaching during conflicts",
                    "Building social confidence",
                ),
                capability="peer_interaction_guidance",
            ),
            RecommendationSpec(
                key="emotional",
                recommendation_type="emotional_intelligence_development",
                title="Emotional Intelligence Development for {name}",
                instruction="Recommend activities that develop emotional intelligence for {name} ({age} years old).",
                points=(
                    "Emotion vocabulary building",
                    "Regulation techniques",
                    "Empathy exercises",
                    "Family conversations about feelings",
                ),
                capability="emotional_intelligence_development",
            ),
        ),
        tasks={
            SpecialistTaskType.SOCIAL_SKILLS_ASSESSMENT: TaskHandler("Social skills assessment", "social", "social"),
            SpecialistTaskType.PEER_INTERACTION_PLANNING: TaskHandler("Peer interaction planning", "peer", "peer"),
            SpecialistTaskType.EMOTIONAL_DEVELOPMENT_EVALUATION: TaskHandler(
                "Emotional development evaluation", "emotional", "emotional"
            ),
        },
    )

    academic = SpecialistProfile(
        kind="Academic Advisor",
        domain="academic advising",
        role=(
            "You are an Academic Advisor AI agent specializing in educational planning and academic "
            "development. Your role is to help parents support their child's academic progress, school "
            "readiness, and educational success."
        ),
        focus=(
            "Age-appropriate academic expectations and milestones",
            "School readiness assessment and preparation",
            "Academic progress tracking and analysis",
            "Educational planning and goal setting",
            "Learning support strategies and resources",
        ),
        tone="Keep responses practical, encouraging, and focused on building academic confidence and success.",
        capabilities=(
            ("academic_progress_tracking", "Track and analyze academic progress and performance"),
            ("school_readiness_assessment", "Assess school readiness and prepare for academic transitions"),
            ("educational_planning", "Create personalized educational plans and learning strategies"),
        ),
        insights=(
            InsightSpec(
                key="progress",
                insight_type="academic_progress_analysis",
                title="Academic Progress Analysis for {name}",
                instruction="Analyze the academic progress of {name} ({age} years old).",
                points=(
                    "Performance against grade expectations",
                    "Subject strengths",
                    "Subjects needing support",
                    "Study habits",
                ),
                confidence=0.8,
                capability="academic_progress_tracking",
            ),
            InsightSpec(
                key="readiness",
                insight_type="school_readiness_analysis",
                title="School Readiness Assessment for {name}",
                instruction="Assess the school readiness of {name} ({age} years old).",
                points=(
                    "Pre-academic skills",
                    "Self-care and independence",
                    "Social readiness for the classroom",
                    "Attention and following instructions",
                ),
                confidence=0.8,
                capability="school_readiness_assessment",
            ),
            InsightSpec(
                key="learning",
                insight_type="learning_pattern_analysis",
                title="Learning Pattern Analysis for {name}",
                instruction="Analyze the learning patterns of {name} ({age} years old) in an academic setting.",
                points=(
                    "How new material is best absorbed",
                    "Homework and study patterns",
                    "Response to feedback",
                    "Learning environment preferences",
                ),
                confidence=0.8,
                capability="educational_planning",
            ),
        ),
        recommendations=(
            RecommendationSpec(
                key="support",
                recommendation_type="academic_support",
                title="Academic Support Plan for {name}",
                instruction="Create an academic support plan for {name} ({age} years old).",
                points=(
                    "Targeted support for weaker subjects",
                    "Home study routines",
                    "Working with teachers",
                    "Resources and tools",
                ),
                capability="academic_progress_tracking",
            ),
            RecommendationSpec(
                key="readiness",
                recommendation_type="school_readiness",
                title="School Readiness Preparation for {name}",
                instruction="Recommend school readiness preparation for {name} ({age} years old).",
                points=(
                    "Skills to practice before the transition",
                    "Routines that ease the start of school",
                    "Social preparation",
                    "Parent involvement",
                ),
                capability="school_readiness_assessment",
                priority=ArtifactPriority.HIGH,
            ),
            RecommendationSpec(
                key="planning",
                recommendation_type="educational_planning",
                title="Educational Planning for {name}",
                instruction="Create an educational plan for {name} ({age} years old).",
                points=(
                    "Short-term academic goals",
                    "Long-term educational goals",
                    "Enrichment opportunities",
                    "Progress checkpoints",
                ),
                capability="educational_planning",
            ),
        ),
        tasks={
            SpecialistTaskType.ACADEMIC_ASSESSMENT: TaskHandler("Academic assessment", "progress", "support"),
            SpecialistTaskType.SCHOOL_READINESS_EVALUATION: TaskHandler(
                "School readiness evaluation", "readiness", "readiness"
            ),
            SpecialistTaskType.EDUCATIONAL_PLANNING: TaskHandler("Educational planning", "learning", "planning"),
        },
    )

    return {profile.kind: profile for profile in (development, learning, behavior, social, academic)}


SPECIALIST_PROFILES: dict[str, SpecialistProfile] = _build_profiles()


class SpecialistAgent(AgentSupport):
    """Domain specialist whose prompts, artifacts and task types come from a profile."""

    def __init__(self, agent: AgentRecord, context: AgentContext, profile: SpecialistProfile) -> None:
        self.profile = profile
        self.capability_definitions = profile.capabilities
        super().__init__(agent, context)

    async def _child(self) -> ChildProfile | None:
        if self.context.child is not None:
            return self.context.child
        if self.context.child_id is None:
            return None
        try:
            self.context.child = await self.context.store.get_child_by_id(self.context.child_id)
        except RecordNotFoundError:
            return None
        return self.context.child

    def _system_prompt(self) -> str:
        focus = "\n".join(f"{index}. {item}" for index, item in enumerate(self.profile.focus, start=1))
        parts = [self.profile.role, f"Context: {self.context.describe()}"]
        history = self.history_prompt()
        if history:
            parts.append(f"Recent conversation:\n{history}")
        parts += [f"Focus on:\n{focus}", self.profile.tone]
        return "\n\n".join(parts)

    def _failed(self, exc: ParentPilotError, *, operation: str) -> None:
        increment_agent_error(agent=self.profile.kind, category=exc.category)
        logger.warning(
            "specialist_operation_failed",
            agent_id=self.agent.id,
            specialist=self.profile.kind,
            operation=operation,
            error=str(exc),
            error_category=exc.category,
        )

    async def process_message(self, message: str) -> AgentResponse:
        child = await self._child()
        if child is None:
            return AgentResponse.failure(f"No child data available for {self.profile.domain}.")
        try:
            reply = await self.complete(message, system_prompt=self._system_prompt())
        except UpstreamError as exc:
            self._failed(exc, operation="process_message")
            return AgentResponse.failure(f"Failed to process {self.profile.domain} request.")
        await self.log_conversation(message, reply, child_id=child.id)
        return AgentResponse(success=True, message=reply)

    async def _analyze(self, analysis: InsightSpec, child: ChildProfile) -> Insight | None:
        content = await self.complete(_render(analysis.instruction, analysis.points, child))
        return await self.create_insight(
            insight_type=analysis.insight_type,
            title=analysis.title.format(name=child.name),
            content=content,
            confidence_score=analysis.confidence,
            data_sources=("child_profile",),
        )

    async def _recommend(self, generator: RecommendationSpec, child: ChildProfile) -> Recommendation | None:
        description = await self.complete(_render(generator.instruction, generator.points, child))
        return await self.create_recommendation(
            recommendation_type=generator.recommendation_type,
            title=generator.title.format(name=child.name),
            description=description,
            action_items=parse_list(description, 5),
            priority=generator.priority,
        )

    async def generate_insights(self) -> list[Insight]:
        child = await self._child()
        if child is None:
            return []
        insights: list[Insight] = []
        for analysis in self.profile.insights:
            if not self.is_capability_enabled(analysis.capability):
                continue
            try:
                insight = await self._analyze(analysis, child)
            except UpstreamError as exc:
                self._failed(exc, operation=analysis.insight_type)
                continue
            if insight is not None:
                insights.append(insight)
        return insights

    async def generate_recommendations(self) -> list[Recommendation]:
        child = await self._child()
        if child is None:
            return []
        recommendations: list[Recommendation] = []
        for generator in self.profile.recommendations:
            if not self.is_capability_enabled(generator.capability):
                continue
            try:
                recommendation = await self._recommend(generator, child)
            except UpstreamError as exc:
                self._failed(exc, operation=generator.recommendation_type)
                continue
            if recommendation is not None:
                recommendations.append(recommendation)
        return recommendations

    def resolve_task_type(self, task: AgentTask) -> SpecialistTaskType:
        try:
            task_type = SpecialistTaskType(task.task_type or "")
        except ValueError:
            raise UnknownTaskTypeError(f"Unknown task type {task.task_type!r} for {self.profile.kind}") from None
        if task_type not in self.profile.tasks:
            raise UnknownTaskTypeError(f"{self.profile.kind} does not handle {task_type.value}")
        return task_type

    async def execute_task(self, task_id: str) -> AgentResponse:
        task = next((item for item in await self.get_tasks() if item.id == task_id), None)
        if task is None:
            return AgentResponse.failure("Task not found.")
        try:
            task_type = self.resolve_task_type(task)
        except UnknownTaskTypeError as exc:
            logger.warning(
                "specialist_unknown_task_type",
                agent_id=self.agent.id,
                task_id=task_id,
                task_type=task.task_type,
                error_category=exc.category,
            )
            return AgentResponse.failure("Unknown task type.")
        child = await self._child()
        if child is None:
            return AgentResponse.failure("Child data not available.")

        handler = self.profile.tasks[task_type]
        try:
            insight = await self._analyze(self.profile.insight(handler.insight), child)
            recommendation = await self._recommend(self.profile.recommendation(handler.recommendation), child)
        except UpstreamError as exc:
            self._failed(exc, operation=task_type.value)
            await self.finish_task(task, status=AgentTaskStatus.FAILED, result_data={"error": str(exc)})
            return AgentResponse.failure(f"Failed to complete {handler.label.lower()}.")

        insights = [insight] if insight is not None else []
        recommendations = [recommendation] if recommendation is not None else []
        result: dict[str, Any] = {
            "insight": insight.model_dump(mode="json") if insight else None,
            "recommendations": [item.model_dump(mode="json") for item in recommendations],
        }
        completed = await self.finish_task(task, status=AgentTaskStatus.COMPLETED, result_data=result)
        logger.info(
            "specialist_task_completed",
            agent_id=self.agent.id,
            task_id=task_id,
            task_type=task_type.value,
        )
        return AgentResponse(
            success=True,
            message=f"{handler.label} completed successfully.",
            data=result,
            tasks=[completed],
            insights=insights,
            recommendations=recommendations,
        )


__all__ = [
    "SPECIALIST_PROFILES",
    "SpecialistAgent",
    "SpecialistProfile",
    "SpecialistTaskType",
]
