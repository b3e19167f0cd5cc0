"""credgen: policy-aware credential generation for scripts and the command line."""

__version__ = "0.1.0"


def generate(algorithm: str = "password", *, website=None, **options) -> str:
    """Generate one credential without stored settings; the one-liner for scripts.

    Options are the fields of the algorithm's options model. Unset fields
    take their defaults and the result is checked against the algorithm's
    built-in limits, but no organisation policy applies.

    Args:
        algorithm: Algorithm id, e.g. ``"password"``, ``"passphrase"`` or a
                   forwarder such as ``"duck_duck_go"``.
        website:   Website the credential is generated for.

    Raises:
        KeyError: If *algorithm* is unknown.
        credgen.errors.ForwarderError: If a forwarding service rejects the request.

    Example::

        from credgen import generate

        password = generate(length=24, special=True)
        phrase = generate("passphrase", num_words=5, capitalize=True)
    """
    import asyncio

    import httpx

    from .config import settings
    from .i18n import DefaultTranslator
    from .models import GenerateRequest
    from .providers import SecretsRandomSource
    from .randomizer import Randomizer
    from .strategies import GENERATORS, GeneratorDependencies

    strategy = GENERATORS[algorithm]
    values = strategy.options.model_validate(options).with_defaults()
    constraints = strategy.to_constraints(strategy.disabled_policy)
    values = constraints.calibrate(values).adjust(values)

    async def run() -> str:
        async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as client:
            deps = GeneratorDependencies(
                Randomizer(SecretsRandomSource()), client, DefaultTranslator(settings.product_name)
            )
            generated = await strategy.generate(GenerateRequest(website=website), values, deps)
            return generated.credential

    return asyncio.run(run())
