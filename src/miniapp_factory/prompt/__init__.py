from .composer import PromptComposer, PromptTemplateError

__all__ = ["PromptComposer", "PromptTemplateError"]
