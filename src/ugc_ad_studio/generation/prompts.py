"""Prompt templates for script, image, narration and video generation."""

from ugc_ad_studio.models.campaign import AdInput

SCRIPT_PROMPT = """\
Create a 4-part UGC (User-Generated Content) video ad script for a product called "{product_name}".
The ad should feel authentic and be suitable for platforms like TikTok, Instagram Reels, and YouTube Shorts.
Product Image is provided as context. Model image is provided for visual style reference.

Desired Moods: {moods}.
Desired Backgrounds: {backgrounds}.

Generate a concise script for each of the following four scenes: Hook, Problem, Solution, and CTA.
Each part should be 1-2 sentences long.
"""

IMAGE_PROMPT = """\
Generate a photorealistic, UGC-style image for a social media video ad.
The scene depicts: "{script}".
The product is "{product_name}".
The overall mood is "{mood}" and the background is "{background}".
The image should look like it was shot on a modern smartphone.
Use a vertical 9:16 aspect ratio.
"""

AUDIO_PROMPT = "In a friendly, conversational tone, say: {script}"

VIDEO_PROMPT = """\
A 5-second, UGC-style vertical video for social media.
Scene: "{script}".
The product in the video is "{product_name}".
The mood is "{mood}" and the background is "{background}".
The style should be authentic, as if shot on a smartphone.
"""

SCENE_DESCRIPTIONS: dict[str, str] = {
    "Hook": "A short, attention-grabbing hook (1-2 sentences).",
    "Problem": "A relatable problem the target audience faces (1-2 sentences).",
    "Solution": "How the product solves this problem (1-2 sentences).",
    "CTA": "A clear call to action (1 sentence).",
}


def build_script_prompt(inputs: AdInput) -> str:
    return SCRIPT_PROMPT.format(
        product_name=inputs.product_name,
        moods=", ".join(inputs.moods),
        backgrounds=", ".join(inputs.backgrounds),
    )


def build_image_prompt(script: str, inputs: AdInput) -> str:
    # Only the first mood/background steer single-shot visuals
    return IMAGE_PROMPT.format(
        script=script,
        product_name=inputs.product_name,
        mood=inputs.moods[0],
        background=inputs.backgrounds[0],
    )


def build_audio_prompt(script: str) -> str:
    return AUDIO_PROMPT.format(script=script)


def build_video_prompt(script: str, inputs: AdInput) -> str:
    return VIDEO_PROMPT.format(
        script=script,
        product_name=inputs.product_name,
        mood=inputs.moods[0],
        background=inputs.backgrounds[0],
    )
