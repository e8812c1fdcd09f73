"""HTML email templates (``string.Template`` placeholders)."""
from __future__ import annotations

from html import escape
from string import Template

MUSIC_READY_SUBJECT = "🎵 Sua música está pronta!"
MUSIC_RELEASED_SUBJECT = "🎁 Sua música foi liberada!"

MUSIC_READY_HTML = Template("""\
<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>$heading</title></head>
<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333; background: #f5f5f5; padding: 20px;">
  <div style="max-width: 600px; margin: 0 auto; background: #fff; border-radius: 10px; padding: 30px;">
    <h1 style="color: #9b87f5; text-align: center;">$heading</h1>
    <p>Olá <strong>$customer_name</strong>,</p>
    <p>Sua música personalizada para <strong>$recipient_name</strong> foi criada com muito carinho.</p>
    <div style="background: #f8f9fa; padding: 20px; border-radius: 8px; margin: 20px 0;">
      <h3 style="margin-top: 0;">$song_title</h3>
      <p style="margin-bottom: 0;">Estilo: $music_style · Duração: $duration</p>
    </div>
    $download_links
    <p style="color: #666; font-size: 14px; text-align: center;">MusicLovely · Música personalizada</p>
  </div>
</body>
</html>
""")

DOWNLOAD_LINK_HTML = Template("""\
<div style="text-align: center; margin: 16px 0;">
  <a href="$url" style="display: inline-block; background: #9b87f5; color: #fff; text-decoration: none; padding: 14px 28px; border-radius: 8px;">$label</a>
</div>
""")

CHECKOUT_REMINDER_SUBJECT = "Sua música para $recipient_name está esperando 💜"

CHECKOUT_REMINDER_HTML = Template("""\
<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>Finalize seu pedido</title></head>
<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333; background: #f5f5f5; padding: 20px;">
  <div style="max-width: 600px; margin: 0 auto; background: #fff; border-radius: 10px; padding: 30px;">
    <p>Olá <strong>$customer_name</strong>,</p>
    <p>Notamos que seu pedido da música para <strong>$recipient_name</strong> ainda não foi finalizado.</p>
    <div style="text-align: center; margin: 30px 0;">
      <a href="$checkout_url" style="display: inline-block; background: #9b87f5; color: #fff; text-decoration: none; padding: 16px 32px; border-radius: 8px;">Finalizar pedido</a>
    </div>
    <p style="color: #666; font-size: 14px; text-align: center;">MusicLovely · Música personalizada</p>
  </div>
</body>
</html>
""")


def format_duration(seconds: float | None) -> str:
    if not seconds:
        return "3-4 min"
    total = int(seconds)
    return f"{total // 60}:{total % 60:02d}"


def customer_name(email: str | None, name: str | None = None) -> str:
    if name and name.strip():
        return name.strip()
    local = (email or "").split("@")[0]
    return local or "Cliente"


def render_music_ready(
    customer: str,
    recipient: str,
    song_title: str,
    music_style: str,
    duration: float | None,
    downloads: list[tuple[str, str]],
    heading: str = MUSIC_READY_SUBJECT,
) -> str:
    links = "".join(
        DOWNLOAD_LINK_HTML.substitute(url=escape(url, quote=True), label=escape(label))
        for label, url in downloads
    )
    return MUSIC_READY_HTML.substitute(
        heading=escape(heading),
        customer_name=escape(customer),
        recipient_name=escape(recipient),
        song_title=escape(song_title),
        music_style=escape(music_style),
        duration=format_duration(duration),
        download_links=links,
    )


def render_checkout_reminder(customer: str, recipient: str, checkout_url: str) -> tuple[str, str]:
    subject = Template(CHECKOUT_REMINDER_SUBJECT).substitute(recipient_name=recipient)
    html = CHECKOUT_REMINDER_HTML.substitute(
        customer_name=escape(customer),
        recipient_name=escape(recipient),
        checkout_url=escape(checkout_url, quote=True),
    )
    return subject, html
