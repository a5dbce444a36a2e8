"""
AI prompt templates for food analysis and idealized dish rendering.

The analysis prompt pairs with FOOD_ANALYSIS_RESPONSE_SCHEMA: the prompt asks
for the content, the schema fixes the shape.
"""

# =============================================================================
# FOOD IMAGE ANALYSIS
# =============================================================================

FOOD_ANALYSIS_PROMPT = """Analyze this image of food. Identify the dish and provide a detailed breakdown.
1. Name and describe the dish.
2. Who is the target audience for this meal? (e.g., Athletes, Keto dieters, Kids).
3. Estimate the nutrition facts per serving (Calories, Fiber, Protein, Carbs, Fat, Sugar, Sodium).
4. List probable ingredients and explain the specific FUNCTION of each ingredient in the body or dish (e.g., "Chicken: Muscle repair", "Turmeric: Anti-inflammatory").
5. Provide a short recipe/preparation method.
6. Estimate the cost of ingredients (Receipt estimation)."""


# =============================================================================
# IDEALIZED IMAGE GENERATION
# =============================================================================

IDEALIZED_IMAGE_STYLE = (
    "High resolution, 4k, delicious, appetizing, studio lighting, "
    "michelin star plating."
)


def build_idealized_image_prompt(dish_name: str, description: str = "") -> str:
    """
    Build the text-only prompt for a studio-style photo of a dish.

    Args:
        dish_name: Name of the dish from the analysis
        description: Optional dish description, may be empty

    Returns:
        Prompt text for the image model
    """
    subject = f"Professional food photography of {dish_name.strip()}."
    description = (description or "").strip()
    if description:
        subject = f"{subject} {description.rstrip('.')}."
    return f"{subject}\n{IDEALIZED_IMAGE_STYLE}"
