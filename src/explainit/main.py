# src/explainit/main.py
import asyncio
import sys

from absl import app
from absl import flags

from explainit import config
from explainit.config import setup_system
from explainit.exceptions import ExplainItError, ValidationError
from explainit.logging_config import get_logger
from explainit.prompts import LANGUAGES, TONES
from explainit.providers import PROVIDER_IDS, lookup

logger = get_logger("main")

FLAGS = flags.FLAGS

# --- Flag Definitions ---

flags.DEFINE_enum(
    "mode",
    "explain",
    ["explain", "test_key", "api"],
    "Operation mode: explain (one-shot explanation), test_key (probe a key), api (server)"
)
flags.DEFINE_string("text", None, "Text to explain in explain mode.")
flags.DEFINE_enum("tone", None, list(TONES), "Explanation tone; defaults to the saved preference.")
flags.DEFINE_enum("language", None, list(LANGUAGES), "Explanation language; defaults to the saved preference.")
flags.DEFINE_enum(
    "provider",
    None,
    list(PROVIDER_IDS),
    "Provider to use; defaults to the saved active provider.",
)
flags.DEFINE_string(
    "api_key",
    None,
    "API key to use for this run instead of the saved one. Never persisted.",
)
flags.DEFINE_integer("port", config.API_PORT, "Port for API server")
flags.DEFINE_boolean("verbose", False, "Enable verbose output")


async def handle_explain(service):
    """Explain FLAGS.text and print the result."""
    if not FLAGS.text:
        raise ValidationError("text", FLAGS.text, "Required for explain mode")

    await service.load_preferences()
    if FLAGS.provider:
        await service.switch_provider(FLAGS.provider)
    if FLAGS.api_key:
        service.use_session_credential(service.settings.snapshot().provider_id, FLAGS.api_key)

    provider = lookup(service.settings.snapshot().provider_id)
    print(f"Explaining with {provider.name} ({provider.model_id})...")
    result = await service.request_explanation(FLAGS.text, tone=FLAGS.tone, language=FLAGS.language)

    print("-" * 40)
    if result.success:
        print(result.text)
        print("-" * 40)
        return True

    print(f"Error: {result.error}")
    if result.is_credential_error:
        print(f"Check your API key for {provider.name}: {provider.key_url}")
    print("-" * 40)
    return False


async def handle_test_key(service):
    """Probe the given or saved key and print the status."""
    await service.load_preferences()
    provider = lookup(FLAGS.provider or service.settings.snapshot().provider_id)
    api_key = FLAGS.api_key
    if api_key is None:
        api_key = service.settings.preferences.credentials[provider.id].saved_value

    response = await service.test_credential(provider.id, api_key)
    print(f"{provider.name}: {response['status']}")
    if response.get("error"):
        print(f"Error: {response['error']}")
    return response["success"]


def handle_api_server():
    """Start the API server."""
    import uvicorn
    from explainit.api import app as api_app

    print(f"Starting API server on port {FLAGS.port}")
    print(f"API documentation: http://localhost:{FLAGS.port}/docs")
    print(f"Health check: http://localhost:{FLAGS.port}/health")

    uvicorn.run(
        api_app,
        host=config.API_HOST,
        port=FLAGS.port,
        reload=config.API_DEBUG,
        log_level=FLAGS.verbose and "debug" or "info"
    )


def main(argv):
    del argv  # Unused.

    setup_system(verbose=FLAGS.verbose)
    mode = FLAGS.mode

    try:
        if mode == "api":
            handle_api_server()
            return

        service = config.get_service()
        if mode == "explain":
            ok = asyncio.run(handle_explain(service))
        elif mode == "test_key":
            ok = asyncio.run(handle_test_key(service))
        else:
            print(f"Unknown mode: {mode}")
            ok = False

    except ValidationError as e:
        print(f"Validation Error: {e.message}")
        sys.exit(1)
    except ExplainItError as e:
        logger.error("Main execution failed", error=str(e))
        print(f"Error: {e.message}")
        sys.exit(1)

    if not ok:
        sys.exit(1)


def run():
    app.run(main)


if __name__ == "__main__":
    run()
