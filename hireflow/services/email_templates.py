"""Built-in email templates for the single-candidate composer and bulk email."""

from dataclasses import dataclass
from typing import Literal

_SIGNATURE = """Best regards,
{{user.name}}
{{user.title}}
{{company.name}}"""

_TEAM_SIGNATURE = """Best regards,
{{user.name}}
{{company.name}} Recruitment Team"""


@dataclass(frozen=True, slots=True)
class EmailTemplate:
    id: str
    name: str
    subject: str
    body: str
    category: Literal[
        "screening",
        "interview",
        "offer",
        "rejection",
        "follow-up",
        "announcement",
        "update",
        "reminder",
        "invitation",
        "custom",
    ]
    stages: tuple[str, ...] = ()


DEFAULT_TEMPLATES: tuple[EmailTemplate, ...] = (
    EmailTemplate(
        id="screening-initial",
        name="Initial Screening",
        subject="Application Received - {{candidate.name}} | {{campaign.title}}",
        body=f"""Dear {{{{candidate.name}}}},

Thank you for your interest in the {{{{campaign.title}}}} position at {{{{company.name}}}}. We have received your application and are currently reviewing it.

Our recruitment team will carefully assess your qualifications and experience. If your profile matches our requirements, we will contact you within 3-5 business days to discuss the next steps.

In the meantime, feel free to explore more about our company and culture on our website.

{_SIGNATURE}""",
        category="screening",
        stages=("sourced", "screening"),
    ),
    EmailTemplate(
        id="interview-invitation",
        name="Interview Invitation",
        subject="Interview Invitation - {{candidate.name}} | {{campaign.title}}",
        body=f"""Dear {{{{candidate.name}}}},

Congratulations! We were impressed with your application for the {{{{campaign.title}}}} position and would like to invite you for an interview.

Interview Details:
- Date: [Please specify date]
- Time: [Please specify time]
- Duration: Approximately 45 minutes
- Format: [Video call/In-person]
- Location/Link: [To be shared separately]

Please confirm your availability by replying to this email. If the proposed time doesn't work for you, please suggest alternative times that suit your schedule.

We look forward to meeting you and discussing how you can contribute to our team.

{_SIGNATURE}""",
        category="interview",
        stages=("interview",),
    ),
    EmailTemplate(
        id="offer-congratulations",
        name="Job Offer",
        subject="Job Offer - {{candidate.name}} | {{campaign.title}}",
        body=f"""Dear {{{{candidate.name}}}},

We are delighted to extend an offer for the {{{{campaign.title}}}} position at {{{{company.name}}}}!

After careful consideration of your qualifications, experience, and interview performance, we believe you would be a valuable addition to our team.

The formal offer letter with detailed terms and conditions will be sent separately. Please review it carefully and let us know if you have any questions.

We are excited about the possibility of you joining our team and look forward to your response.

Congratulations once again!

{_SIGNATURE}""",
        category="offer",
        stages=("hired",),
    ),
    EmailTemplate(
        id="rejection-respectful",
        name="Respectful Rejection",
        subject="Update on Your Application - {{candidate.name}} | {{campaign.title}}",
        body=f"""Dear {{{{candidate.name}}}},

Thank you for your interest in the {{{{campaign.title}}}} position at {{{{company.name}}}} and for taking the time to go through our selection process.

After careful consideration, we have decided to move forward with other candidates whose experience more closely aligns with our current requirements.

This decision was not easy, as we were impressed with your qualifications and enthusiasm. We encourage you to apply for future opportunities that match your skills and interests.

We wish you all the best in your career endeavors.

{_SIGNATURE}""",
        category="rejection",
        stages=("rejected",),
    ),
)

BULK_EMAIL_TEMPLATES: tuple[EmailTemplate, ...] = (
    EmailTemplate(
        id="status-update",
        name="Application Status Update",
        subject="Update on Your Application - {{campaign.title}}",
        body=f"""Dear {{{{candidate.name}}}},

We wanted to provide you with an update on your application for the {{{{campaign.title}}}} position at {{{{company.name}}}}.

Your application is currently being reviewed by our team. We appreciate your patience during this process and will keep you informed of any developments.

If you have any questions, please don't hesitate to reach out to us.

{_TEAM_SIGNATURE}""",
        category="update",
        stages=("screening", "interview"),
    ),
    EmailTemplate(
        id="interview-batch",
        name="Batch Interview Invitation",
        subject="Interview Invitation - {{campaign.title}} | {{company.name}}",
        body=f"""Dear {{{{candidate.name}}}},

Congratulations! We are pleased to invite you for an interview for the {{{{campaign.title}}}} position at {{{{company.name}}}}.

Interview Details:
- Date: [To be scheduled individually]
- Format: [Video call/In-person]
- Duration: Approximately 45-60 minutes

Our team will reach out to you individually within the next 2 business days to schedule your specific interview time.

Please confirm your interest by replying to this email.

{_TEAM_SIGNATURE}""",
        category="invitation",
        stages=("screening",),
    ),
    EmailTemplate(
        id="position-filled",
        name="Position Filled Notification",
        subject="Thank You for Your Interest - {{campaign.title}}",
        body=f"""Dear {{{{candidate.name}}}},

Thank you for your interest in the {{{{campaign.title}}}} position at {{{{company.name}}}} and for the time you invested in our selection process.

We have completed our recruitment for this position and have made our final selection. While we were impressed with your qualifications, we have decided to move forward with other candidates.

We encourage you to apply for future opportunities that match your skills and experience. We will keep your profile on file for consideration for upcoming positions.

Thank you again for considering {{{{company.name}}}} as a potential employer.

{_TEAM_SIGNATURE}""",
        category="announcement",
        stages=("screening", "interview", "rejected"),
    ),
)


def find_template(template_id: str) -> EmailTemplate | None:
    for template in (*DEFAULT_TEMPLATES, *BULK_EMAIL_TEMPLATES):
        if template.id == template_id:
            return template
    return None


def templates_for_stage(stage_id: str) -> list[EmailTemplate]:
    """Single-candidate templates relevant to a stage, plus custom ones."""
    return [t for t in DEFAULT_TEMPLATES if stage_id in t.stages or t.category == "custom"]
