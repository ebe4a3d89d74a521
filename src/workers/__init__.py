from workers.batch_generator import BatchGenerationController
from workers.single_generator import GenerationState, SingleGenerationController

__all__ = ["BatchGenerationController", "GenerationState", "SingleGenerationController"]
