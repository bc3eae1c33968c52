"""Weighted ensemble of models."""

import torch

from .errors import ShapeError, UsageError


class MeanModel:
    """
    Weighted mean of a set of models.

    Members are kept in a dict mapping model -> weight, so iteration follows
    insertion order and the class vote is reproducible.
    """

    def __init__(self):
        self._weights: dict = {}
        self._weight_sum = 0.0

    @property
    def number_of_models(self) -> int:
        return len(self._weights)

    @property
    def weight_sum(self) -> float:
        return self._weight_sum

    def add_model(self, model, weight: float = 1.0) -> None:
        """Add a model with a positive weight. Adding a member again increases its weight."""
        if weight <= 0:
            raise ValueError(f"Weights must be positive, got {weight}")
        self._weights[model] = self._weights.get(model, 0.0) + weight
        self._weight_sum += weight

    def clear_models(self) -> None:
        self._weights.clear()
        self._weight_sum = 0.0

    def get_model(self, index: int):
        return list(self._weights)[index]

    def weight(self, index: int) -> float:
        return self._weights[self.get_model(index)]

    def set_weight(self, index: int, weight: float) -> None:
        if weight <= 0:
            raise ValueError(f"Weights must be positive, got {weight}")
        model = self.get_model(index)
        self._weight_sum += weight - self._weights[model]
        self._weights[model] = weight

    def parameter_vector(self) -> torch.Tensor:
        """The ensemble itself has no parameters."""
        return torch.zeros(0, dtype=torch.float64)

    def set_parameter_vector(self, parameters) -> None:
        if len(parameters) != 0:
            raise ShapeError("MeanModel has no parameters")

    def create_state(self) -> None:
        return None

    def step(self, inputs, state=None) -> torch.Tensor:
        """Evaluate a single pattern; the state is ignored."""
        inputs = torch.as_tensor(inputs, dtype=torch.float64)
        return self(inputs.unsqueeze(0))[0]

    def __call__(self, patterns) -> torch.Tensor:
        """Weighted mean of the member outputs for a batch of patterns."""
        self._check_not_empty()
        outputs = None
        for model, weight in self._weights.items():
            response = torch.as_tensor(model(patterns), dtype=torch.float64)
            outputs = weight * response if outputs is None else outputs + weight * response
        return outputs / self._weight_sum

    def predict_class(self, patterns) -> torch.Tensor:
        """
        Weighted majority vote over the members' class predictions.

        Members returning real-valued outputs [B, C] vote for their argmax;
        members returning integer labels [B] vote for that label. Ties go to
        the lowest class index.
        """
        self._check_not_empty()
        responses = []
        for model, weight in self._weights.items():
            response = torch.as_tensor(model(patterns))
            if response.is_floating_point():
                response = response.argmax(dim=-1)
            responses.append((response.long(), weight))

        num_classes = max(int(r.max()) for r, _ in responses) + 1
        batch_size = responses[0][0].shape[0]
        votes = torch.zeros(batch_size, num_classes, dtype=torch.float64)
        rows = torch.arange(batch_size)
        for response, weight in responses:
            votes.index_put_((rows, response), torch.full((batch_size,), weight,
                             dtype=torch.float64), accumulate=True)
        return votes.argmax(dim=1)

    def _check_not_empty(self) -> None:
        if not self._weights:
            raise UsageError("MeanModel has no models")
