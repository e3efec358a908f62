"""인증 인프라"""
from infrastructure.auth.jwt_service import issue_access_token, decode_access_token
