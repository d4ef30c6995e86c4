"""Predefined sales pipelines, one per department.

Follow-up intervals are fixed per stage; a 0h interval (scheduled events and
onboarding triggers) makes the follow-up due immediately.
"""

from __future__ import annotations

from leadflow.domain.value_objects.enums import Department, StageKind
from leadflow.domain.value_objects.pipeline import Pipeline, PipelineStage

INSURANCE_PIPELINE = Pipeline(
    department=Department.INSURANCE,
    name="Insurance Sales",
    stages=(
        PipelineStage(
            "New", "Hot lead just assigned, initial contact needed", 2,
            next_actions=("Call within 2 hours", "Send welcome email", "Schedule consultation"),
        ),
        PipelineStage(
            "Engaged", "Initial contact made, interest confirmed", 24,
            next_actions=("Needs assessment", "Send product information", "Build rapport"),
        ),
        PipelineStage(
            "Consultation Scheduled", "Discovery call or meeting scheduled", 0,
            next_actions=("Prepare presentation", "Research client needs", "Send calendar reminder"),
        ),
        PipelineStage(
            "Proposal Sent", "Customized insurance proposal delivered", 48,
            next_actions=("Follow up within 48h", "Answer questions", "Handle objections"),
        ),
        PipelineStage(
            "Closed Won", "Client signed and policy issued", 0, StageKind.WON,
            next_actions=("Start onboarding sequence", "Send welcome email", "Schedule review"),
            triggers_onboarding=True,
        ),
        PipelineStage(
            "Onboarding", "Client onboarding sequence in progress", 24, StageKind.POST_WIN,
            next_actions=("Monitor email engagement", "Track onboarding progress", "Schedule support calls"),
        ),
        PipelineStage(
            "Active Client", "Onboarding completed, active long-term client", 168, StageKind.POST_WIN,
            next_actions=("Annual review", "Referral outreach", "Cross-sell opportunities"),
        ),
        PipelineStage(
            "Closed Lost", "Opportunity lost or client declined", 2160, StageKind.LOST,
            next_actions=("Document reason", "Add to nurture list", "Set future follow-up"),
        ),
    ),
)

RECRUITING_PIPELINE = Pipeline(
    department=Department.RECRUITING,
    name="Recruiting Pipeline",
    stages=(
        PipelineStage(
            "New", "New recruiting prospect assigned", 4,
            next_actions=("Initial call within 4 hours", "Invite to opportunity webinar", "Send starter kit"),
        ),
        PipelineStage(
            "Opportunity Webinar", "Attended or scheduled for business overview", 24,
            next_actions=("Follow up post-webinar", "Answer questions", "Build value"),
        ),
        PipelineStage(
            "1:1 Call", "Personal consultation scheduled or completed", 0,
            next_actions=("Assess fit", "Present opportunity", "Address concerns"),
        ),
        PipelineStage(
            "Enrolled Distributor", "Joined the team and started training", 0, StageKind.WON,
            next_actions=("Start recruit onboarding", "Send welcome package", "Assign mentor"),
            triggers_onboarding=True,
        ),
        PipelineStage(
            "Onboarding", "New recruit onboarding and fast-start training in progress", 24,
            StageKind.POST_WIN,
            next_actions=("Monitor training progress", "Track module completion", "Schedule mentor calls"),
        ),
        PipelineStage(
            "Active Distributor", "Onboarding completed, active team member", 168, StageKind.POST_WIN,
            next_actions=("Set monthly goals", "Advanced training", "Team leadership development"),
        ),
        PipelineStage(
            "Not Joined", "Decided not to pursue opportunity", 720, StageKind.LOST,
            next_actions=("Stay in touch", "Add to newsletter", "Future opportunity follow-up"),
        ),
    ),
)

PIPELINES: dict[Department, Pipeline] = {
    Department.INSURANCE: INSURANCE_PIPELINE,
    Department.RECRUITING: RECRUITING_PIPELINE,
}


def pipeline_for(department: Department) -> Pipeline:
    return PIPELINES[department]
