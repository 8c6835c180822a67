"""
Description Service
Asks a hosted text-generation model for a short marketing blurb.
Degrades to a fixed placeholder on any problem; the catalog never depends on it.
"""

import logging

import requests
from flask import current_app

logger = logging.getLogger(__name__)

GEMINI_API_URL = 'https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent'

MISSING_KEY_TEXT = "AI description unavailable (Missing API Key)."
EMPTY_TEXT = "No description generated."
ERROR_TEXT = "Could not generate description at this time."

PROMPT = (
    'Write a catchy, short marketing description (max 2 sentences) for a product named '
    '"{name}" in the category "{category}". Focus on benefits.'
)


def generate_description(product_name, category):
    api_key = current_app.config.get('GEMINI_API_KEY')
    if not api_key:
        logger.warning("GEMINI_API_KEY not configured")
        return MISSING_KEY_TEXT

    url = GEMINI_API_URL.format(model=current_app.config.get('GEMINI_MODEL', 'gemini-1.5-flash'))
    payload = {'contents': [{'parts': [{'text': PROMPT.format(name=product_name, category=category)}]}]}
    try:
        # Timeout kept short so an admin form never hangs on it
        response = requests.post(
            url,
            json=payload,
            headers={'x-goog-api-key': api_key},
            timeout=current_app.config.get('GEMINI_TIMEOUT', 5.0),
        )
        response.raise_for_status()
        data = response.json()
    except (requests.RequestException, ValueError) as e:
        logger.error("Description generation failed: %s", e)
        return ERROR_TEXT

    try:
        text = data['candidates'][0]['content']['parts'][0]['text']
    except (KeyError, IndexError, TypeError):
        text = ''
    return text.strip() or EMPTY_TEXT
