"""
Virtual-host templates for nginx and Apache.

The optional PHP block is rendered only when a PHP-FPM socket was
found on the host.
"""

from __future__ import annotations

from string import Template

_NGINX_SITE = Template("""\
server {
    listen ${port};
    listen [::]:${port};

    server_name ${domain} www.${domain};
    root ${root};
    index ${index};

    access_log ${log_dir}/${domain}.access.log;
    error_log ${log_dir}/${domain}.error.log;

    location / {
        try_files $$uri $$uri/ ${fallback};
    }
${php_block}
    location ~ /\\.ht {
        deny all;
    }
}
""")

_NGINX_PHP = Template("""
    location ~ \\.php$$ {
        include snippets/fastcgi-php.conf;
        fastcgi_pass unix:${socket};
        fastcgi_param SCRIPT_FILENAME $$document_root$$fastcgi_script_name;
        include fastcgi_params;
    }
""")

_APACHE_SITE = Template("""\
<VirtualHost *:${port}>
    ServerName ${domain}
    ServerAlias www.${domain}
    DocumentRoot ${root}

    <Directory ${root}>
        Options -Indexes +FollowSymLinks
        AllowOverride All
        Require all granted
    </Directory>
${php_block}
    ErrorLog ${log_dir}/${domain}-error.log
    CustomLog ${log_dir}/${domain}-access.log combined
</VirtualHost>
""")

_APACHE_PHP = Template("""
    <FilesMatch \\.php$$>
        SetHandler "proxy:unix:${socket}|fcgi://localhost"
    </FilesMatch>
""")


def render_nginx_site(
    domain: str,
    root: str,
    port: int = 80,
    log_dir: str = "/var/log/nginx",
    php_socket: str | None = None,
) -> str:
    php_block = _NGINX_PHP.substitute(socket=php_socket) if php_socket else ""
    return _NGINX_SITE.substitute(
        port=port,
        domain=domain,
        root=root,
        index="index.php index.html index.htm" if php_socket else "index.html index.htm",
        log_dir=log_dir,
        fallback="/index.php?$args" if php_socket else "=404",
        php_block=php_block,
    )


def render_apache_site(
    domain: str,
    root: str,
    port: int = 80,
    log_dir: str = "/var/log/apache2",
    php_socket: str | None = None,
) -> str:
    php_block = _APACHE_PHP.substitute(socket=php_socket) if php_socket else ""
    return _APACHE_SITE.substitute(
        port=port,
        domain=domain,
        root=root,
        log_dir=log_dir,
        php_block=php_block,
    )
