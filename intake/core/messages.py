# User-visible texts. The transport renders `choices` as a reply keyboard.

CANCEL_BUTTON = "❌ Cancel"
SKIP_BUTTON = "Skip"
SHARE_CONTACT_BUTTON = "📞 Share contact"

CANCEL_TOKENS = frozenset({"/cancel", "cancel", CANCEL_BUTTON.lower()})
SKIP_TOKENS = frozenset({"skip", "/skip"})

START_COMMAND = "/start"
COMPLAINT_COMMAND = "/complaint"
HELP_COMMAND = "/help"
STATUS_COMMAND = "/status"

RESTART_HINT = "To begin again use /start (application) or /complaint."

HELP_TEXT = (
    "🆘 Help\n\n"
    "/start - fill in a job application\n"
    "/complaint - submit a complaint\n"
    "/cancel - cancel the current form\n"
    "/status - show your progress\n"
    "/help - show this message"
)

IDLE_HINT = "To get started use /start or /complaint.\nFor help - /help"

WELCOME = {
    "job_application": "👋 Welcome!\n\nI will help you apply for a job. First, enter your full name:",
    "complaint": "📝 You can file a complaint here. It will be handled confidentially.\n\nFirst, enter your full name:",
}

# Prompt shown when a field becomes the awaited one, keyed by FieldStep.kind
FIELD_PROMPTS = {
    "name": "Enter your full name:",
    "phone": "📱 Great! Now enter your phone number or share your contact.\nFormat: +380XXXXXXXXX or 0XXXXXXXXX",
    "email": "📧 Enter your email address:",
    "vacancy": "💼 Which vacancy are you interested in?",
    "message": "💬 Write your message or question (optional).\nYou can type \"skip\" to finish:",
    "complaint": "💬 Describe the problem in a few sentences (at least 10 characters):",
    "text": "Enter a value:",
}

# Re-prompt after a rejected value
FIELD_ERRORS = {
    "name": "❌ Please enter a valid name (letters only, at least 2 characters).",
    "phone": "❌ Please enter a valid phone number.\nFormat: +380XXXXXXXXX or 0XXXXXXXXX",
    "email": "❌ Please enter a valid email address.",
    "vacancy": "❌ Please name the vacancy in plain words (up to 200 characters).",
    "message": "❌ The message is too long or looks like spam. Maximum 1000 characters.",
    "complaint": "❌ Please describe the problem in 10 to 2000 characters, without links or ads.",
    "text": "❌ The value is not valid.",
}

ATTEMPT_COUNTER = "Attempt {attempt} of {max_attempts}."

CANCELLED = "Process cancelled."
ATTEMPTS_EXHAUSTED = "Too many attempts. Please try again later."
SUBMITTING = "⏳ Sending your data..."

APPLICATION_SUCCESS = (
    "✅ Thank you! Your application has been sent.\n\n"
    "📋 Application ID: {external_id}\n"
    "📞 We will contact you soon.\n\n"
    "To send another application use /start"
)
COMPLAINT_SUCCESS = (
    "✅ Thank you! Your complaint has been received and will be reviewed.\n\n"
    "To file another complaint use /complaint"
)
SUBMISSION_FAILED = (
    "❌ Something went wrong while sending your data.\n"
    "Please try again later with /start or contact support."
)

BLOCKED = "⛔ Access is temporarily restricted. Try again in {minutes} min."
INTERNAL_FAULT = "An error occurred. Please try again later or contact support.\n" + RESTART_HINT

STATUS_IDLE = "You have no form in progress.\n" + RESTART_HINT
STATUS_IN_PROGRESS = "Form: {form}\nStep {step} of {total}: {field}\nFilled in: {filled}"

CONTACT_NOT_EXPECTED = "A contact is only needed at the phone step."
BUSY = "⏳ Still working on your previous message. Please send this one again in a moment."
