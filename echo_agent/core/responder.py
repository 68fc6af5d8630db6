"""
Canned response selection.
Picks a reply template for the detected intent and adjusts it for handoff and sentiment.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Any

from echo_agent.core.analyzer import MessageAnalysis, FALLBACK_INTENT, NEGATIVE_THRESHOLD
from echo_agent.core.models import Message


@dataclass(frozen=True)
class ResponseTemplate:
    content: str
    suggestions: Sequence[str]


RESPONSE_TEMPLATES: Dict[str, ResponseTemplate] = {
    "greeting": ResponseTemplate(
        "Hello! I'm Echo, your AI customer support assistant. How can I help you today?",
        ("Account issues", "Billing questions", "Technical support", "General inquiry")
    ),
    "help": ResponseTemplate(
        "I'm here to help! I can assist with account issues, billing questions, technical problems, "
        "and general inquiries. What would you like help with?",
        ("Account access", "Billing inquiry", "Technical issue", "Product information")
    ),
    "refund": ResponseTemplate(
        "I understand you're inquiring about a refund. To help you best, I'll need some information. "
        "Could you please provide your order number or describe the issue you're experiencing?",
        ("Provide order number", "Describe the issue", "Speak to billing specialist")
    ),
    "billing": ResponseTemplate(
        "I can help with billing questions. What specific billing issue are you experiencing? "
        "This could include invoices, payment methods, charges, or subscription details.",
        ("View invoice", "Update payment method", "Question about charges", "Cancel subscription")
    ),
    "account": ResponseTemplate(
        "I can assist with account-related issues. Are you having trouble logging in, need to update "
        "your profile, or have questions about account settings?",
        ("Reset password", "Update email", "Account settings", "Delete account")
    ),
    "technical": ResponseTemplate(
        "I'm sorry you're experiencing technical difficulties. Can you describe the problem in more "
        "detail? What were you trying to do when the issue occurred?",
        ("Describe the problem", "Provide error message", "Connect with tech support")
    ),
    "feedback": ResponseTemplate(
        "Thank you for sharing your feedback! Your input is valuable to us. Please tell me more about "
        "your experience so I can make sure your feedback reaches the right team.",
        ("Share positive feedback", "Report an issue", "Suggest improvement")
    ),
    "farewell": ResponseTemplate(
        "You're welcome! Is there anything else I can help you with today? If not, have a great day!",
        ("Ask another question", "No, I'm all set", "Speak to human agent")
    ),
    "general_inquiry": ResponseTemplate(
        "I'm here to help! Could you please provide more details about what you need assistance with? "
        "I can help with accounts, billing, technical issues, and general questions about our services.",
        ("Account help", "Billing question", "Technical support", "Product info")
    ),
}

HANDOFF_TEMPLATE = ResponseTemplate(
    "I understand you'd like to speak with a human agent. I'm connecting you now with one of our "
    "customer support specialists who can provide personalized assistance. They'll have access to "
    "our conversation history.",
    ("Wait for agent", "Continue with AI", "Leave a message")
)

APOLOGY_PREFIX = "I sense you may be frustrated, and I sincerely apologize for any inconvenience. "
HUMAN_OFFER_SUFFIX = " If you'd prefer, I can connect you with a human agent for more personalized support."
HUMAN_AGENT_SUGGESTION = "Speak to human agent"


@dataclass
class AgentReply:
    """Reply chosen for a user message."""
    content: str
    suggestions: List[str] = field(default_factory=list)
    context_summary: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "content": self.content,
            "suggestions": list(self.suggestions),
            "context_summary": self.context_summary
        }


def summarize_context(analysis: MessageAnalysis, history: Sequence[Message]) -> str:
    """Human-readable summary of the conversation so far, used for handoffs."""
    if not history:
        return f"New conversation. User intent: {analysis.intent}."

    discussed = ", ".join(turn.intent or "general" for turn in history)
    return f"User has discussed: {discussed}. Current intent: {analysis.intent}."


def generate_response(
    analysis: MessageAnalysis,
    message: str,
    history: Sequence[Message] = ()
) -> AgentReply:
    """
    Select a canned reply for the analyzed message.

    A human request replaces the template with the handoff message. Otherwise
    negative sentiment wraps the template in an apology and offers a human agent.
    """
    template = RESPONSE_TEMPLATES.get(analysis.intent, RESPONSE_TEMPLATES[FALLBACK_INTENT])
    content = template.content
    suggestions = list(template.suggestions)

    if analysis.requests_human:
        content = HANDOFF_TEMPLATE.content
        suggestions = list(HANDOFF_TEMPLATE.suggestions)
    elif analysis.sentiment < NEGATIVE_THRESHOLD:
        content = APOLOGY_PREFIX + content + HUMAN_OFFER_SUFFIX
        suggestions.append(HUMAN_AGENT_SUGGESTION)

    return AgentReply(
        content=content,
        suggestions=suggestions,
        context_summary=summarize_context(analysis, history)
    )
