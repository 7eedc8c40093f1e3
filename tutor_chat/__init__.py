"""
Tutor Chat - 강사/학생 1:1 실시간 채팅 서비스
"""

__version__ = "1.0.0"
