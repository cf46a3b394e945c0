"""Prompt builder for civil-inspection damage classification."""


def build_analysis_prompt() -> str:
    """Return the fixed instruction sent with every site photo."""
    return (
        "As a civil engineer, I have some photos and would like to classify them into different "
        "categories before starting a project. Find if it contains any visible cracks, peeling paint, "
        "possible water damage, visual discoloration, honeycombing, spalling or any other possible damage. "
        "If nothing, then just mention one statement about the image. Sound it technical and to the point. "
        "Do not suggest any next steps, only one statement is suffice."
    )
