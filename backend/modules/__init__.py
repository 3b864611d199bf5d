"""
功能模块
"""
