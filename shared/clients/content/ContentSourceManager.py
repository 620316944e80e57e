from shared.clients.content.ContentSourceInterface import ContentSourceInterface
from shared.clients.engine_loader import load_engine
from shared.helper.HelperConfig import HelperConfig


class ContentSourceManager:
    """Builds the content source named by CONTENT_ENGINE, "filesystem" unless set."""

    def __init__(self, helper_config: HelperConfig):
        self.helper_config = helper_config
        engine = helper_config.get_string_val("CONTENT_ENGINE", default="filesystem")
        self.client: ContentSourceInterface = load_engine(helper_config, "content", "ContentSource", engine)

    def get_client(self) -> ContentSourceInterface:
        return self.client
