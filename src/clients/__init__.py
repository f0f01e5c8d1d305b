"""
Clients Package for the Live Presenter

Language-model oracle contracts and adapters, and the translation collaborator.
"""

from .oracle import (
    OracleAdapter,
    LanguageModelSession,
    AbortSignal,
    OracleError,
    ClassificationFailed,
    OperationAborted,
    EngineNotInitialized
)
from .pydantic_ai_oracle import PydanticAIOracle
from .translation import TranslationPort, LLMTranslator, create_translator

__all__ = [
    'OracleAdapter',
    'LanguageModelSession',
    'AbortSignal',
    'OracleError',
    'ClassificationFailed',
    'OperationAborted',
    'EngineNotInitialized',
    'PydanticAIOracle',
    'TranslationPort',
    'LLMTranslator',
    'create_translator'
]
