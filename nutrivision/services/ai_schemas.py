"""
Pydantic models for the structured food analysis returned by Gemini.

These models are the single definition of the analysis contract:
- FoodAnalysis validates the JSON payload of analyze_food_image()
- gemini_response_schema() derives the structured-output schema sent with
  the request, so required fields and nesting never drift apart.

Wire keys are camelCase (dishName, targetAudience, ...); Python attributes
are snake_case.
"""

from typing import Annotated, Any, get_args, get_origin

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def _null_as(default: Any) -> BeforeValidator:
    """Optional fields may come back as explicit nulls; treat them as absent."""
    return BeforeValidator(lambda value: default if value is None else value)


OptionalText = Annotated[str, _null_as("")]
OptionalSteps = Annotated[tuple[str, ...], _null_as(())]


class _ContractModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


# --- Food Analysis (analyze_food_image) ---


class Ingredient(_ContractModel):
    name: str
    quantity: OptionalText = ""
    function: str = Field(
        description="Health benefit or culinary function of this ingredient"
    )


class NutritionInfo(_ContractModel):
    # Strict: a JSON number only, not "420" or true
    calories: float = Field(strict=True)
    protein: str
    carbohydrates: str
    fiber: str
    fat: str
    sugar: OptionalText = ""
    sodium: OptionalText = ""

    def facts(self) -> list[tuple[str, str]]:
        """Ordered (label, value) rows for a nutrition card."""
        rows = [
            ("Calories", f"{self.calories:g} kcal"),
            ("Protein", self.protein),
            ("Carbs", self.carbohydrates),
            ("Fiber", self.fiber),
            ("Fat", self.fat),
            ("Sugar", self.sugar),
        ]
        if self.sodium:
            rows.append(("Sodium", self.sodium))
        return rows


class FoodAnalysis(_ContractModel):
    dish_name: str
    description: OptionalText = ""
    target_audience: str
    nutrition: NutritionInfo
    ingredients: tuple[Ingredient, ...]  # order = significance, as reported
    recipe_instructions: OptionalSteps = ()
    estimated_cost: OptionalText = Field(
        default="",
        description="Estimated cost range for these ingredients (e.g. $5 - $8)",
    )

    @field_validator("dish_name")
    @classmethod
    def dish_name_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("dishName must not be blank")
        return value


# --- Gemini structured-output schema ---


_SCALAR_TYPES = {
    str: "STRING",
    float: "NUMBER",
    int: "INTEGER",
    bool: "BOOLEAN",
}


def gemini_response_schema(model: type[BaseModel]) -> dict:
    """
    Build a Gemini response_schema dict from a pydantic model.

    Properties are keyed by wire alias; a field is required when the model
    gives it no default.
    """
    properties = {}
    required = []
    for name, field in model.model_fields.items():
        key = field.alias or name
        prop = _schema_for_annotation(field.annotation)
        if field.description:
            prop["description"] = field.description
        properties[key] = prop
        if field.is_required():
            required.append(key)

    schema = {"type": "OBJECT", "properties": properties}
    if required:
        schema["required"] = required
    return schema


def _schema_for_annotation(annotation: Any) -> dict:
    if isinstance(annotation, type) and issubclass(annotation, BaseModel):
        return gemini_response_schema(annotation)

    origin = get_origin(annotation)
    if origin is Annotated:
        return _schema_for_annotation(get_args(annotation)[0])
    if origin in (list, tuple):
        item_type = get_args(annotation)[0]
        return {"type": "ARRAY", "items": _schema_for_annotation(item_type)}

    if annotation in _SCALAR_TYPES:
        return {"type": _SCALAR_TYPES[annotation]}

    raise TypeError(f"Unsupported annotation for Gemini schema: {annotation!r}")


FOOD_ANALYSIS_RESPONSE_SCHEMA = gemini_response_schema(FoodAnalysis)
