import random

DEFAULT_EMAIL_TEMPLATE = "default_email"
VERIFY_VIEW = "email_partials/email_verify"
REPORT_VIEW = "email_partials/report"

VERIFY_SUBJECT = "Verify your email address for Breach Watch"
REPORT_SUBJECT = "Your Breach Watch report"

verify_banners = [
    "One click and you're on the watch list 🔐",
    "Almost there! Just confirm it's really you ✅",
    "Confirm your address to start getting breach alerts 🛡️",
]

def get_random_verify_banner() -> str:
    return random.choice(verify_banners)

report_banners = [
    "Here's what we found for your address 🔍",
    "Your first breach report is ready 📬",
    "You're all set! Here's your breach summary 🛡️",
]

safe_banners = [
    "Good news: no known breaches for your address 🎉",
    "All clear! We'll let you know if that changes ✨",
]

def get_random_report_banner(breach_count: int) -> str:
    return random.choice(report_banners if breach_count else safe_banners)
