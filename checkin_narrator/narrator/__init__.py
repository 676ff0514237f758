"""Check-in Narrator: biến check-in thành bài viết DAILY/WEEKLY/MONTHLY và bản chuyển thể cho từng nền tảng."""

__version__ = "0.1.0"
