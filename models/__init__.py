from .base import Base
from .deploy import Deploy, DeployStatusCode
from .auth_token import AuthToken, Environment, auth_tokens_environments
