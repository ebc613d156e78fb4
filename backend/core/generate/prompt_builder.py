import json
from models.query import SelectedRecipe

SYSTEM_PROMPT = """You are a helpful recipe assistant.
Rules: answer only from the recipe contexts, suggest the best matching recipes
with concise steps, do not invent ingredients. Output as JSON."""

class PromptBuilder:
    @staticmethod
    def build_messages(query: str, recipes: list[SelectedRecipe]) -> list[dict]:
        """
        Compiles the user query and the selected recipe contexts into chat messages.
        """
        context_parts = []
        for idx, recipe in enumerate(recipes, 1):
            lines = [f"Context {idx} - Title: {recipe.title or 'Untitled'}"]
            for chunk in recipe.chunks:
                ingredients = chunk.metadata.get("ingredients")
                if not isinstance(ingredients, list):
                    ingredients = []
                lines.append(f"Ingredients: {json.dumps(ingredients)[:400]}")
                lines.append(f"Instructions snippet: {chunk.text[:500]}")
            context_parts.append("\n".join(lines))

        context_str = "\n\n".join(context_parts)

        user_content = (
            f"The user asked: {query}\n\n"
            f"Use the following recipe contexts to answer succinctly.\n\n{context_str}\n\n"
            "Answer: Provide top recipe suggestions and concise steps."
        )

        return [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": user_content}
        ]
