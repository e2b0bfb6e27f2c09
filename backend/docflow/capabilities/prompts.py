"""
Prompts for the multimodal image description step.

Kept separate from the client so wording can be tuned without
touching call logic.
"""

SYSTEM_PROMPT = "You are a helpful assistant that helps describe images."

DESCRIBE_IMAGE_PROMPT = (
    "describe this image, focus on details which are relevant for insurances and claims"
)
