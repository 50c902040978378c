VISION_USER_PROMPT = """
Describe ONLY the physical, visual characteristics of this creature drawing. Focus on what you can SEE, not concepts or personality.

Describe these VISUAL details:
- Overall body shape (round, oval, angular, etc.)
- Size proportions (head to body ratio, limb sizes)
- Physical features (number and shape of eyes, limbs, appendages)
- Colors (specific shades, where each color appears)
- Surface texture (smooth, fuzzy, scaly, rough)
- Patterns or markings (stripes, spots, gradients)
- Facial features (eye shape, mouth shape, nose if any)

Provide a purely visual, physical description with NO personality traits, NO elemental types, NO mood descriptions, NO abstract concepts. Just describe what the creature physically looks like.

Return ONLY valid JSON:
{
  "visualDescription": "detailed physical visual description"
}

Be thorough and detailed about physical characteristics. Aim for 300-800 characters to provide rich detail.
""".strip()

VISION_HINT_TEMPLATE = "\n\nThe young artist says about their drawing: {hint}"
